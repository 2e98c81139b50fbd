import json

import pytest

from classifier_models import InvalidSnapshotError
from embeddings import DIMENSIONS
from tag_classifier import (
    Candidate,
    EmbeddingClassifier,
    combined_score,
    lexical_overlap,
    normalize_tag,
    passes_filter,
)
from text_preprocessing import preprocess_text, tokenize

CORPUS = [
    ("python django rest api backend", ["python", "backend"]),
    ("python pandas numpy data science", ["python", "data-science"]),
    ("react typescript frontend ui components", ["frontend", "typescript"]),
]

ASTRO_CORPUS = [
    ("telescope nebula orbit", ["astro"]),
    ("telescope nebula comet", ["astro"]),
] + [(f"alpha{i} beta{i}", ["misc"]) for i in range(18)]


def trained(docs):
    classifier = EmbeddingClassifier()
    for text, tags in docs:
        classifier.train(text, tags)
    classifier.finalize_training()
    return classifier


def tags_of(suggestions):
    return [s.tag for s in suggestions]


# ------------------------------------------------------
# END TO END
# ------------------------------------------------------

def test_untrained_classifier():
    classifier = EmbeddingClassifier()
    assert classifier.classify("anything at all") == []

    stats = classifier.get_stats()
    assert stats.total_docs == 0
    assert stats.total_tags == 0


def test_classify_before_finalize_returns_nothing():
    classifier = EmbeddingClassifier()
    classifier.train("python django rest api backend", ["python"])
    assert classifier.classify("python django rest api backend") == []


def test_ranks_related_tags_first():
    classifier = trained(CORPUS)
    results = classifier.classify("flask python backend rest endpoint")

    assert set(tags_of(results[:2])) == {"python", "backend"}
    for other in results[2:]:
        assert other.probability < results[1].probability


def test_single_document_tag_matches_its_own_text():
    docs = [
        ("quantum entanglement superposition qubits", ["physics"]),
        ("sourdough starter flour hydration", ["baking"]),
        ("marathon pacing intervals tempo", ["running"]),
    ]
    classifier = trained(docs)
    results = classifier.classify(docs[0][0])

    assert results[0].tag == "physics"
    assert results[0].probability > 0.9


def test_single_document_corpus_is_degenerate():
    # every token is in 100% of the documents and gets skipped
    classifier = trained([("quantum entanglement superposition", ["physics"])])
    assert classifier.classify("quantum entanglement superposition") == []


def test_results_are_deterministic():
    classifier = trained(CORPUS)
    first = classifier.classify("python backend rest api")
    second = classifier.classify("python backend rest api")
    assert [s.model_dump() for s in first] == [s.model_dump() for s in second]


def test_max_results():
    classifier = trained(CORPUS)
    assert len(classifier.classify("python backend rest api", max_results=1)) == 1
    assert classifier.classify("python backend rest api", max_results=0) == []


def test_whitelist():
    classifier = trained(CORPUS)
    text = "flask python backend rest endpoint"

    assert tags_of(classifier.classify(text, whitelist=["python", "unknown"])) == ["python"]
    assert tags_of(classifier.classify(text, whitelist=[])) == tags_of(classifier.classify(text))


@pytest.mark.parametrize(
    "tag,existing",
    [
        ("artificial-intelligence", "ai"),
        ("ai", "Artificial Intelligence"),
        ("machine_learning", "ml"),
        ("javascript", "js"),
        ("js", "JavaScript"),
        ("user interface", "ui"),
        ("web-dev", "web_dev"),
    ],
)
def test_existing_tags_and_synonyms_are_not_suggested(tag, existing):
    docs = [
        ("neurons gradients backpropagation tensors", [tag]),
        ("sourdough starter flour hydration", ["baking"]),
        ("marathon pacing intervals tempo", ["running"]),
    ]
    classifier = trained(docs)
    text = docs[0][0]

    assert tag in tags_of(classifier.classify(text))
    assert tag not in tags_of(classifier.classify(text, existing_tags=[existing]))


# ------------------------------------------------------
# LEXICAL FILTER
# ------------------------------------------------------

def test_similarity_alone_is_not_enough():
    classifier = trained(ASTRO_CORPUS)
    trainer = classifier.trainer

    assert trainer.distinctive_words("astro") == ["telescope", "nebula", "orbit", "comet"]
    # cosine is well above the floor, but only 1 of 4 distinctive words matches
    assert "astro" not in tags_of(classifier.classify("comet"))
    assert "astro" in tags_of(classifier.classify("telescope orbit"))


@pytest.mark.parametrize(
    "text",
    [
        "telescope nebula orbit comet",
        "telescope orbit",
        "comet",
        "alpha1 beta1 alpha2 beta2 telescope",
        "nothing related here",
    ],
)
def test_suggestions_meet_overlap_floor(text):
    classifier = trained(ASTRO_CORPUS)
    words = set(tokenize(preprocess_text(text)))

    for suggestion in classifier.classify(text):
        overlap = lexical_overlap(classifier.trainer.distinctive_words(suggestion.tag), words)
        assert overlap >= 0.4


@pytest.mark.parametrize(
    "similarity,overlap,min_similarity,expected",
    [
        (0.9, 0.39, 0.1, False),
        (0.2, 0.6, 0.1, True),
        (0.05, 1.0, 0.1, False),
        (0.3, 0.5, 0.1, False),
        (0.36, 0.5, 0.1, True),
    ],
)
def test_passes_filter(similarity, overlap, min_similarity, expected):
    assert passes_filter(similarity, overlap, min_similarity) is expected


def test_overlap_dominates_ranking():
    lexical = Candidate("lexical", 0.3, 1.0)
    vector = Candidate("vector", 0.9, 0.5)
    assert combined_score(lexical) > combined_score(vector)


def test_lexical_overlap():
    assert lexical_overlap([], {"any"}) == 1.0
    assert lexical_overlap(["a1", "b2", "c3", "d4"], {"a1", "c3", "zz"}) == 0.5


@pytest.mark.parametrize(
    "tag,expected",
    [
        ("Artificial-Intelligence", "ai"),
        ("machine learning", "ml"),
        ("web_dev", "webdev"),
        (" Python ", "py"),
        ("gardening", "gardening"),
    ],
)
def test_normalize_tag(tag, expected):
    assert normalize_tag(tag) == expected


# ------------------------------------------------------
# PERSISTENCE
# ------------------------------------------------------

def test_export_import_round_trip():
    classifier = trained(CORPUS)
    payload = json.loads(json.dumps(classifier.export_data()))

    assert payload["totalDocs"] == 3
    assert set(payload) == {"tagEmbeddings", "tagDocCounts", "totalDocs", "tagDistinctiveWords", "docFrequency"}

    restored = EmbeddingClassifier()
    restored.import_data(payload)

    text = "flask python backend rest endpoint"
    assert restored.get_all_tags() == classifier.get_all_tags()
    assert restored.get_tag_doc_count("python") == 2
    before = classifier.classify(text)
    after = restored.classify(text)
    assert tags_of(after) == tags_of(before)
    assert [s.probability for s in after] == pytest.approx([s.probability for s in before])


def test_reset():
    classifier = trained(CORPUS)
    classifier.reset()

    assert classifier.get_stats().total_docs == 0
    assert classifier.classify("python backend") == []


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "not a snapshot",
        {"tagEmbeddings": {}, "tagDocCounts": {}},
        {"totalDocs": "abc"},
        {"totalDocs": -1},
        {"totalDocs": 2.5},
        {"totalDocs": True},
    ],
)
def test_import_rejects_malformed_payload(payload):
    with pytest.raises(InvalidSnapshotError):
        EmbeddingClassifier().import_data(payload)


def test_import_drops_bad_embeddings(caplog):
    good = [0.0] * (DIMENSIONS - 1) + [1.0]
    payload = {
        "tagEmbeddings": {
            "good": good,
            "short": [1.0, 2.0],
            "text": ["x"] * DIMENSIONS,
            "orphan": good,
        },
        "tagDocCounts": {"good": 1, "short": 1, "text": 1},
        "totalDocs": 3,
    }
    classifier = EmbeddingClassifier()
    classifier.import_data(payload)

    assert classifier.get_all_tags() == ["good"]
    assert classifier.get_tag_doc_count("short") == 0
    assert "Dropping tag 'short'" in caplog.text
    assert "Dropping tag 'orphan'" in caplog.text
