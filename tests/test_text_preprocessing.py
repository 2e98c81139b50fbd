import pytest
from text_preprocessing import preprocess_text, strip_html, tokenize


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("---\ntitle: Notes\ntags: [a]\n---\nHello World", "hello world"),
        ("Read [the docs](https://example.com/docs) today", "read the docs today"),
        ("before ![](pic.png) after", "before after"),
        ("run `pip install numpy` then\n```python\nprint('hi')\n```\ndone", "run then done"),
        ("<p>Hello <b>there</b></p>", "hello there"),
        ("Artificial   Intelligence and Machine\nLearning", "ai and machinelearning"),
        ("User Interface / User Experience", "ui ux"),
        ("C++ & Rust!!", "c rust"),
        ("", ""),
        (None, ""),
    ],
)
def test_preprocess_text(raw, expected):
    assert preprocess_text(raw) == expected


def test_frontmatter_only_stripped_at_start():
    text = "intro\n---\nnot: frontmatter\n---"
    assert preprocess_text(text) == "intro not frontmatter"


def test_code_only_document_is_empty():
    assert preprocess_text("```\nimport os\n```") == ""


@pytest.mark.parametrize(
    "clean",
    [
        "python django rest api backend",
        "machine learning basics",
        "ai and ux for web apps",
        "",
    ],
)
def test_preprocessing_is_idempotent(clean):
    once = preprocess_text(clean)
    assert preprocess_text(once) == once


def test_strip_html_leaves_plain_text_untouched():
    assert strip_html("5 > 3 and 2 < 4") == "5 > 3 and 2 < 4"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("a bb ccc  D", ["bb", "ccc"]),
        ("Python   Django", ["python", "django"]),
        ("", []),
    ],
)
def test_tokenize(text, expected):
    assert tokenize(text) == expected
