"""
trainer.py

Two-pass training of per-tag centroids.

Pass 1 (`train`) buffers every (text, tags) pair and feeds the document
frequency tracker. Pass 2 (`finalize_training`) can only run once the whole
corpus has been seen, because the embedding weights depend on IDF:

    1. embed every buffered document (unnormalized)
    2. sum the vectors per tag, divide by the tag's document count
    3. reset non-finite centroids to zero, then L2-normalize
    4. cache each tag's distinctive words
    5. drop the buffer

The buffer is not exported, so distinctive words cannot be refreshed
without a full retrain.
"""

import logging
from collections import namedtuple
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np

from classifier_models import ClassifierSnapshot
from embeddings import DIMENSIONS, EmbeddingGenerator, is_finite_vector, l2_normalize
from text_preprocessing import preprocess_text, tokenize
from vocabulary import DocumentFrequencyTracker

logger = logging.getLogger(__name__)


MAX_DISTINCTIVE_WORDS = 20

# ln((N + 1) / df) > 2.0  ~  the word is in fewer than ~14% of documents
DISTINCTIVE_IDF_THRESHOLD = 2.0

# tokens: distinct tokens of the document, in first-seen order
TrainingExample = namedtuple("TrainingExample", ["text", "tags", "tokens"])


class TrainingState(Enum):
    EMPTY = "empty"
    BUFFERING = "buffering"
    FINALIZED = "finalized"


class TrainingStateError(RuntimeError):
    """Raised when train/finalize calls arrive out of order."""


class TagTrainer:
    """
    Owns all mutable training state of one classifier: vocabulary
    statistics, tag centroids, document counts and distinctive words.

    Not thread-safe while training; classifiers built on top of it only
    read from it once finalized.
    """

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self.vocabulary = DocumentFrequencyTracker()
        self.embedder = EmbeddingGenerator(self.vocabulary, dimensions)

        self.tag_embeddings: Dict[str, np.ndarray] = {}
        self.tag_doc_counts: Dict[str, int] = {}
        self.tag_distinctive_words: Dict[str, List[str]] = {}

        self._buffer: List[TrainingExample] = []
        self.state = TrainingState.EMPTY

    # ============================================================
    #                 ACCESSORS
    # ============================================================

    @property
    def total_docs(self) -> int:
        return self.vocabulary.total_docs

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def tags(self) -> List[str]:
        """Known tags in training order."""
        return list(self.tag_embeddings)

    def centroid(self, tag: str) -> Optional[np.ndarray]:
        return self.tag_embeddings.get(tag)

    def distinctive_words(self, tag: str) -> List[str]:
        return self.tag_distinctive_words.get(tag, [])

    def tag_doc_count(self, tag: str) -> int:
        return self.tag_doc_counts.get(tag, 0)

    def embed(self, text: str, normalize: bool = True) -> np.ndarray:
        return self.embedder.embed(text, normalize=normalize)

    # ============================================================
    #                 PASS 1
    # ============================================================

    def train(self, text: str, tags: Iterable[str]) -> None:
        """
        Buffer one labelled document and update document frequencies.
        An empty tag list is ignored.
        """
        tags = list(dict.fromkeys(tags or []))
        if not tags:
            return

        if self.state is TrainingState.FINALIZED:
            raise TrainingStateError("Classifier is already finalized; call reset() before retraining")

        text = text or ""
        tokens = tuple(dict.fromkeys(tokenize(preprocess_text(text))))

        self._buffer.append(TrainingExample(text, tags, tokens))
        self.vocabulary.observe(tokens)
        self.state = TrainingState.BUFFERING

    # ============================================================
    #                 PASS 2
    # ============================================================

    def finalize_training(self) -> None:
        if self.state is TrainingState.FINALIZED:
            raise TrainingStateError("finalize_training() was already called")

        logger.debug(
            "Processing %d documents with vocabulary of %d words",
            len(self._buffer), len(self.vocabulary),
        )

        sums: Dict[str, np.ndarray] = {}
        for example in self._buffer:
            embedding = self.embedder.embed(example.text, normalize=False)
            for tag in example.tags:
                if tag not in sums:
                    sums[tag] = np.zeros(self.dimensions, dtype=np.float64)
                    self.tag_doc_counts[tag] = 0
                sums[tag] += embedding
                self.tag_doc_counts[tag] += 1

        for tag, total in sums.items():
            count = self.tag_doc_counts[tag]
            centroid = total / count
            if not is_finite_vector(centroid):
                logger.warning(
                    "Tag %r centroid has non-finite values after averaging %d documents; resetting to zero",
                    tag, count,
                )
                centroid = np.zeros(self.dimensions, dtype=np.float64)
            self.tag_embeddings[tag] = l2_normalize(centroid)

        logger.debug("Building distinctive word cache...")
        for tag in self.tag_embeddings:
            self.tag_distinctive_words[tag] = self.build_distinctive_words(tag)

        self._buffer = []
        self.state = TrainingState.FINALIZED
        logger.debug("Training finalized: %d tags", len(self.tag_embeddings))

    def build_distinctive_words(self, tag: str) -> List[str]:
        """
        Top high-IDF words across the buffered documents carrying `tag`.

        A word's score is the sum of its IDF over those documents, so words
        that keep coming back in the tag's own documents rank higher.
        """
        scores: Dict[str, float] = {}
        for example in self._buffer:
            if tag not in example.tags:
                continue
            for word in example.tokens:
                idf = self.vocabulary.idf(word)
                if idf > DISTINCTIVE_IDF_THRESHOLD:
                    scores[word] = scores.get(word, 0.0) + idf

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        return [word for word, _ in ranked[:MAX_DISTINCTIVE_WORDS]]

    # ============================================================
    #                 RESET + PERSISTENCE
    # ============================================================

    def reset(self) -> None:
        self.vocabulary.clear()
        self.tag_embeddings = {}
        self.tag_doc_counts = {}
        self.tag_distinctive_words = {}
        self._buffer = []
        self.state = TrainingState.EMPTY

    def snapshot(self) -> ClassifierSnapshot:
        return ClassifierSnapshot(
            tag_embeddings={tag: vector.tolist() for tag, vector in self.tag_embeddings.items()},
            tag_doc_counts=dict(self.tag_doc_counts),
            total_docs=self.total_docs,
            tag_distinctive_words={tag: list(words) for tag, words in self.tag_distinctive_words.items()},
            doc_frequency=self.vocabulary.to_dict(),
        )

    def restore(self, snapshot: ClassifierSnapshot) -> None:
        """Replace all state with a validated snapshot. The buffer is discarded."""
        self.vocabulary = DocumentFrequencyTracker.from_counts(snapshot.doc_frequency, snapshot.total_docs)
        self.embedder = EmbeddingGenerator(self.vocabulary, self.dimensions)
        self.tag_embeddings = {
            tag: np.asarray(vector, dtype=np.float64) for tag, vector in snapshot.tag_embeddings.items()
        }
        self.tag_doc_counts = dict(snapshot.tag_doc_counts)
        self.tag_distinctive_words = {tag: list(words) for tag, words in snapshot.tag_distinctive_words.items()}
        self._buffer = []
        self.state = TrainingState.FINALIZED
