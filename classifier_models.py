import logging
from numbers import Real
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from embeddings import DIMENSIONS

logger = logging.getLogger(__name__)


class InvalidSnapshotError(ValueError):
    """Raised when an exported payload is structurally not a classifier snapshot."""


# ============================================================
# SUGGESTIONS + STATS
# ============================================================

class TagSuggestion(BaseModel):
    """One suggested tag. `probability` is the cosine similarity (after any boosts)."""

    tag: str
    probability: float


class CollectionSuggestion(TagSuggestion):
    collection_name: str


class ClassifierStats(BaseModel):
    total_docs: int = 0
    total_tags: int = 0


class AdvancedStats(BaseModel):
    hierarchy_relations: int = 0
    feedback_records: int = 0
    avg_acceptance_rate: float = 0.0


class FeedbackCounts(BaseModel):
    accepted: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.accepted + self.rejected

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.total if self.total else 0.0


# ============================================================
# PERSISTED SNAPSHOT
# ============================================================

def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_count(value) -> bool:
    return _is_number(value) and value >= 0 and float(value).is_integer()


class ClassifierSnapshot(BaseModel):
    """
    Everything needed to rebuild a trained classifier, minus the training buffer.

    Keys are camelCase on the wire (`tagEmbeddings`, `totalDocs`, ...);
    snake_case names are accepted too.
    """

    model_config = ConfigDict(populate_by_name=True)

    tag_embeddings: Dict[str, List[float]] = Field(default_factory=dict, alias="tagEmbeddings")
    tag_doc_counts: Dict[str, int] = Field(default_factory=dict, alias="tagDocCounts")
    total_docs: int = Field(alias="totalDocs")
    tag_distinctive_words: Dict[str, List[str]] = Field(default_factory=dict, alias="tagDistinctiveWords")
    doc_frequency: Dict[str, int] = Field(default_factory=dict, alias="docFrequency")

    # ============================================================
    # FIELD-LEVEL VALIDATORS (v2)
    # ============================================================

    @field_validator("total_docs", mode="before")
    def check_total_docs(cls, value):
        """
        Missing, non-numeric or negative totals mean the payload did not
        come from this classifier at all.
        """
        if not _is_count(value):
            raise ValueError(f"totalDocs must be a non-negative integer, got {value!r}")
        return int(value)

    @field_validator("tag_embeddings", mode="before")
    def drop_malformed_embeddings(cls, value):
        """Keep only embeddings that are numeric sequences of the right length."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("tagEmbeddings must be a mapping")

        cleaned = {}
        for tag, vector in value.items():
            if hasattr(vector, "tolist"):
                vector = vector.tolist()
            if not isinstance(vector, (list, tuple)) or len(vector) != DIMENSIONS:
                logger.warning("Dropping tag %r: embedding is not a %d-value list", tag, DIMENSIONS)
                continue
            if not all(_is_number(v) for v in vector):
                logger.warning("Dropping tag %r: embedding has non-numeric values", tag)
                continue
            cleaned[str(tag)] = [float(v) for v in vector]
        return cleaned

    @field_validator("tag_doc_counts", "doc_frequency", mode="before")
    def drop_bad_counts(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("count tables must be mappings")

        cleaned = {}
        for key, count in value.items():
            if not _is_count(count):
                logger.warning("Dropping count for %r: %r is not a non-negative integer", key, count)
                continue
            cleaned[str(key)] = int(count)
        return cleaned

    @field_validator("tag_distinctive_words", mode="before")
    def drop_bad_word_lists(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("tagDistinctiveWords must be a mapping")

        cleaned = {}
        for tag, words in value.items():
            if not isinstance(words, (list, tuple)):
                logger.warning("Dropping distinctive words for %r: not a list", tag)
                continue
            cleaned[str(tag)] = [str(w) for w in words]
        return cleaned

    # ============================================================
    # MODEL-LEVEL VALIDATORS (v2)
    # ============================================================

    @model_validator(mode="after")
    def drop_orphaned_tags(self):
        """
        A centroid needs at least one backing document; data for tags
        whose embedding was dropped goes with it.
        """
        for tag in list(self.tag_embeddings):
            if self.tag_doc_counts.get(tag, 0) < 1:
                logger.warning("Dropping tag %r: no document count backs its embedding", tag)
                del self.tag_embeddings[tag]

        known = self.tag_embeddings.keys()
        self.tag_doc_counts = {t: c for t, c in self.tag_doc_counts.items() if t in known}
        self.tag_distinctive_words = {
            t: w for t, w in self.tag_distinctive_words.items() if t in known
        }
        return self

    # ============================================================
    # LOADING
    # ============================================================

    @classmethod
    def from_payload(cls, data):
        """
        Validate an exported dict (or pass an existing snapshot through).
        Structural problems surface as InvalidSnapshotError.
        """
        if isinstance(data, cls):
            return data
        if data is None:
            raise InvalidSnapshotError("Invalid classifier data: nothing to import")
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidSnapshotError(f"Invalid classifier data: {e}") from e

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class AdvancedClassifierSnapshot(ClassifierSnapshot):
    tag_hierarchy: Dict[str, List[str]] = Field(default_factory=dict, alias="tagHierarchy")
    user_feedback: Dict[str, FeedbackCounts] = Field(default_factory=dict, alias="userFeedback")

    @field_validator("tag_hierarchy", mode="before")
    def drop_bad_parent_lists(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("tagHierarchy must be a mapping")
        return {
            str(tag): [str(p) for p in parents]
            for tag, parents in value.items()
            if isinstance(parents, (list, tuple, set))
        }

    @field_validator("user_feedback", mode="before")
    def drop_bad_feedback(cls, value):
        """Keep only entries that are valid accepted/rejected counts."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("userFeedback must be a mapping")

        cleaned = {}
        for tag, counts in value.items():
            try:
                cleaned[str(tag)] = FeedbackCounts.model_validate(counts)
            except ValidationError:
                logger.warning("Dropping feedback for %r: %r is not a pair of non-negative counts", tag, counts)
        return cleaned

