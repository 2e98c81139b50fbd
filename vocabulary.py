"""
vocabulary.py

Running document-frequency statistics for the training corpus.

The tracker is filled during the first training pass and only read
afterwards: the embedding generator and the distinctive-word cache both
compute IDF from it, and classification never mutates it.
"""

import math
from typing import Dict, Iterable, Optional


class DocumentFrequencyTracker:
    """Token -> number of training documents containing it, plus a document total."""

    def __init__(self, counts: Optional[Dict[str, int]] = None, total_docs: int = 0):
        self._counts: Dict[str, int] = dict(counts or {})
        self.total_docs = total_docs

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, token: str) -> bool:
        return token in self._counts

    def observe(self, tokens: Iterable[str]) -> None:
        """
        Count one document.

        Each distinct token is counted once no matter how often it occurs
        in the document.
        """
        self.total_docs += 1
        for token in dict.fromkeys(tokens):
            self._counts[token] = self._counts.get(token, 0) + 1

    def doc_frequency(self, token: str) -> int:
        return self._counts.get(token, 0)

    def document_ratio(self, token: str) -> float:
        """Share of documents containing the token (0.0 before any document)."""
        if self.total_docs <= 0:
            return 0.0
        return self.doc_frequency(token) / self.total_docs

    def idf(self, token: str) -> float:
        """
        Plain IDF used for distinctive-word scoring: ln((N + 1) / df).
        Unseen tokens are treated as df = 1.
        """
        doc_freq = self.doc_frequency(token) or 1
        return math.log((self.total_docs + 1) / doc_freq)

    def clear(self) -> None:
        self._counts.clear()
        self.total_docs = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(self._counts)

    @classmethod
    def from_counts(cls, counts: Dict[str, int], total_docs: int) -> "DocumentFrequencyTracker":
        return cls(counts=counts, total_docs=total_docs)
