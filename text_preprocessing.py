"""
text_preprocessing.py

Normalizes raw note text before it reaches the vocabulary tracker or the
embedding generator. Every other component goes through these two calls:

• preprocess_text(): strips frontmatter, markdown and HTML, folds known
  multi-word phrases into single tokens and flattens punctuation.
• tokenize(): lowercases and splits into tokens of at least 2 characters.

Both are pure functions: the same input always yields the same output.
"""

import re
from typing import Dict, List

from bs4 import BeautifulSoup


# ============================================================
#                 REGEX DEFINITIONS
# ============================================================

# Leading YAML-like block:
#   ---
#   tags: [a, b]
#   ---
FRONTMATTER_RE = re.compile(r"^---[\s\S]*?---")

# [label](https://example.com) -> label
LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")

# ![alt](image.png)
IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")

FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")

INLINE_CODE_RE = re.compile(r"`[^`]+`")

HTML_TAG_RE = re.compile(r"<[^>]+>")

NON_WORD_RE = re.compile(r"[^\w\s]")

WHITESPACE_RE = re.compile(r"\s+")


# ============================================================
#                 PHRASE SYNONYMS
# ============================================================

SYNONYMS: Dict[str, str] = {
    "artificial intelligence": "ai",
    "machine learning": "machinelearning",
    "deep learning": "deeplearning",
    "natural language processing": "nlp",
    "user experience": "ux",
    "user interface": "ui",
    "search engine optimization": "seo",
}


def _phrase_pattern(phrase: str) -> "re.Pattern[str]":
    # "user interface" also matches "user \n interface"
    return re.compile(r"\b" + r"\s+".join(map(re.escape, phrase.split())) + r"\b")


SYNONYM_PATTERNS = [(_phrase_pattern(p), token) for p, token in SYNONYMS.items()]


# ============================================================
#                 STRIPPING HELPERS
# ============================================================

def strip_html(text: str) -> str:
    """
    Remove HTML tags using BeautifulSoup, keeping the inner text.

    Text without anything that looks like a tag is returned untouched, so
    plain notes never pay for a parse.
    """
    if not HTML_TAG_RE.search(text):
        return text

    soup = BeautifulSoup(text, "html.parser")
    return soup.get_text()


def strip_markdown(text: str) -> str:
    """
    Remove the markdown constructs that carry no topical signal.

    Order matters and follows the preprocessing contract:
        1. leading frontmatter block
        2. links, keeping their label
        3. images
        4. fenced code blocks, then inline code spans
    """
    text = FRONTMATTER_RE.sub("", text)
    text = LINK_RE.sub(r"\1", text)
    text = IMAGE_RE.sub("", text)
    text = FENCED_BLOCK_RE.sub("", text)
    text = INLINE_CODE_RE.sub("", text)
    return text


def apply_synonyms(text: str) -> str:
    """Fold multi-word phrases into their single-token form. Expects lowercase text."""
    for pattern, token in SYNONYM_PATTERNS:
        text = pattern.sub(token, text)
    return text


# ============================================================
#                 PUBLIC API
# ============================================================

def preprocess_text(text: str) -> str:
    """
    Normalize raw document text into a single-spaced lowercase string of
    word characters.

    Parameters:
        text (str): raw note body, possibly with frontmatter, markdown or HTML.

    Returns:
        str: cleaned text. Empty input gives "".
    """
    if not text:
        return ""

    text = strip_markdown(text)
    text = strip_html(text)
    text = text.lower()
    text = apply_synonyms(text)
    text = NON_WORD_RE.sub(" ", text)
    return WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    """
    Split preprocessed text on whitespace.
    Tokens shorter than 2 characters are dropped; no stemming, no stopwords.
    """
    if not text:
        return []
    return [word for word in text.lower().split() if len(word) >= 2]
