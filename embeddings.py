"""
embeddings.py

Hashed TF-IDF embeddings: a lightweight stand-in for a language model.

Each token of a document gets a TF-IDF weight (BM25-saturated term
frequency times a boosted IDF) which is spread over three of the 1024
dimensions picked by salted rolling hashes. Different words may land on the
same dimension; the three salts keep such collisions from dominating.
"""

import logging
import math
from collections import Counter

import numpy as np

from text_preprocessing import preprocess_text, tokenize
from vocabulary import DocumentFrequencyTracker

logger = logging.getLogger(__name__)


DIMENSIONS = 1024

# BM25 saturation constant
K1 = 1.5

# Tokens in more than this share of the corpus are skipped.
MAX_DOCUMENT_RATIO = 0.6

BASELINE_IDF = 2.0
IDF_BOOST = 2.0

# (suffix, share of the word weight)
HASH_SLOTS = (
    ("", 0.5),
    ("_salt1", 0.3),
    ("_salt2", 0.2),
)


# ============================================================
#                 VECTOR HELPERS
# ============================================================

def hash_word(word: str) -> int:
    """
    32-bit rolling hash (hash * 31 + code unit), returned as an absolute value.

    Works on UTF-16 code units: a non-BMP character contributes two units.
    """
    data = word.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + (data[i] | (data[i + 1] << 8))) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def is_finite_vector(vector: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(vector)))


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """
    Scale to unit length.

    An all-zero vector stays all-zero; a vector whose norm is not finite is
    replaced by zeros so NaN never spreads into similarity scores.
    """
    norm = float(np.sqrt(np.sum(vector * vector)))
    if not math.isfinite(norm):
        return np.zeros_like(vector)
    if norm > 0:
        return vector / norm
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero length."""
    norm_a = float(np.sqrt(np.dot(a, a)))
    norm_b = float(np.sqrt(np.dot(b, b)))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b)) / (norm_a * norm_b)


# ============================================================
#                 EMBEDDING GENERATOR
# ============================================================

class EmbeddingGenerator:
    """
    Turns text into a fixed-length vector using corpus statistics read from
    a DocumentFrequencyTracker. The tracker is never modified here.
    """

    def __init__(self, vocabulary: DocumentFrequencyTracker, dimensions: int = DIMENSIONS):
        self.vocabulary = vocabulary
        self.dimensions = dimensions

    def term_weight(self, freq: int, doc_length: int, doc_freq: int) -> float:
        """BM25-saturated, length-normalized TF times boosted IDF."""
        tf_saturated = (freq * (K1 + 1)) / (freq + K1)
        tf = tf_saturated / doc_length if doc_length else 0.0

        total_docs = self.vocabulary.total_docs
        idf = BASELINE_IDF
        if total_docs > 0 and doc_freq > 0:
            idf = math.log((total_docs + 1) / doc_freq) + IDF_BOOST

        return tf * idf

    def embed_tokens(self, words, normalize: bool = True) -> np.ndarray:
        embedding = np.zeros(self.dimensions, dtype=np.float64)
        word_freq = Counter(words)
        total_docs = self.vocabulary.total_docs

        for word, freq in word_freq.items():
            doc_freq = self.vocabulary.doc_frequency(word)
            # too common to tell tags apart
            if total_docs > 0 and doc_freq / total_docs > MAX_DOCUMENT_RATIO:
                continue

            weight = self.term_weight(freq, len(words), doc_freq)
            if not math.isfinite(weight):
                logger.debug("Skipping non-finite weight for %r", word)
                continue

            for salt, share in HASH_SLOTS:
                embedding[hash_word(word + salt) % self.dimensions] += weight * share

        if normalize:
            return l2_normalize(embedding)
        return embedding

    def embed(self, text: str, normalize: bool = True) -> np.ndarray:
        """
        Embed a raw document.

        Parameters:
            text (str): raw document text.
            normalize (bool): unit-normalize the result. Training passes False
                so per-document vectors can be summed before the tag centroid
                is normalized.

        Returns:
            np.ndarray: float64 vector of length `dimensions`.
        """
        return self.embed_tokens(tokenize(preprocess_text(text)), normalize=normalize)
