# tag_classifier.py
"""
Tag classifier for notes using:
1. Hashed TF-IDF embeddings compared against per-tag centroids (cosine)
2. A lexical check against each tag's cached distinctive words

A tag is only suggested when both kinds of evidence agree; the lexical
overlap dominates the final ranking.
"""

import logging
import re
from collections import namedtuple
from typing import Dict, Iterable, List, Optional, Sequence, Set

from classifier_models import ClassifierSnapshot, ClassifierStats, TagSuggestion
from embeddings import cosine_similarity
from text_preprocessing import preprocess_text, tokenize
from trainer import TagTrainer

logger = logging.getLogger(__name__)

# ------------------------------------------------------
# 1. TAG SYNONYMS
# ------------------------------------------------------

TAG_SYNONYMS: Dict[str, str] = {
    "artificialintelligence": "ai",
    "machinelearning": "ml",
    "deeplearning": "dl",
    "naturallanguageprocessing": "nlp",
    "userexperience": "ux",
    "userinterface": "ui",
    "searchengineoptimization": "seo",
    "javascript": "js",
    "typescript": "ts",
    "python": "py",
}

TAG_SEPARATOR_RE = re.compile(r"[\s_-]+")


def normalize_tag(tag: str) -> str:
    """
    Canonical form used to detect duplicate or synonymous tags:
    lowercase, separators removed, then mapped through TAG_SYNONYMS.

        "Artificial-Intelligence" -> "ai"
        "web_dev"                 -> "webdev"
    """
    normalized = TAG_SEPARATOR_RE.sub("", tag.lower().strip())
    return TAG_SYNONYMS.get(normalized, normalized)


# ------------------------------------------------------
# 2. SHARED SCORING HELPERS
# ------------------------------------------------------

Candidate = namedtuple("Candidate", ["tag", "probability", "overlap"])


def candidate_tags(trainer: TagTrainer, whitelist: Optional[Sequence[str]] = None) -> List[str]:
    """Whitelisted tags the trainer knows about, or every known tag when no whitelist is given."""
    if whitelist:
        return [t for t in dict.fromkeys(whitelist) if t in trainer.tag_embeddings]
    return trainer.tags


def suppressed_tags(existing_tags: Iterable[str]) -> Set[str]:
    return {normalize_tag(t) for t in existing_tags or ()}


def lexical_overlap(distinctive_words: Sequence[str], doc_tokens: Set[str]) -> float:
    """
    Share of the tag's distinctive words found in the document.
    Tags without cached words are not filtered (1.0).
    """
    if not distinctive_words:
        return 1.0
    hits = sum(1 for w in distinctive_words if w in doc_tokens)
    return hits / len(distinctive_words)


# ------------------------------------------------------
# 3. BASE FILTER + RANKING
# ------------------------------------------------------

MIN_OVERLAP = 0.40
STRONG_OVERLAP = 0.60
# extra similarity required when overlap is only borderline
WEAK_OVERLAP_MARGIN = 0.25

OVERLAP_WEIGHT = 0.7
SIMILARITY_WEIGHT = 0.3


def passes_filter(similarity: float, overlap: float, min_similarity: float) -> bool:
    if overlap < MIN_OVERLAP:
        return False
    if overlap >= STRONG_OVERLAP:
        return similarity >= min_similarity
    return similarity >= min_similarity + WEAK_OVERLAP_MARGIN


def combined_score(candidate: Candidate) -> float:
    return candidate.overlap * OVERLAP_WEIGHT + candidate.probability * SIMILARITY_WEIGHT


# ------------------------------------------------------
# 4. CLASSIFIER
# ------------------------------------------------------

class EmbeddingClassifier:
    """
    Multi-label tag classifier.

    Protocol: any number of train() calls, one finalize_training(), then
    classify() as often as needed. Classifying an untrained or unfinalized
    classifier returns [].
    """

    def __init__(self, trainer: Optional[TagTrainer] = None):
        self.trainer = trainer or TagTrainer()

    def train(self, text: str, tags: Iterable[str]) -> None:
        self.trainer.train(text, tags)

    def finalize_training(self) -> None:
        self.trainer.finalize_training()

    def classify(
        self,
        text: str,
        whitelist: Optional[Sequence[str]] = None,
        min_similarity: float = 0.1,
        max_results: int = 5,
        existing_tags: Iterable[str] = (),
    ) -> List[TagSuggestion]:
        """
        Suggest tags for `text`, best first.

        Parameters:
            text (str): raw document text.
            whitelist: only these tags may be suggested (ignored when empty).
            min_similarity (float): cosine floor for tags with strong word overlap.
            max_results (int): maximum number of suggestions.
            existing_tags: tags already on the document; they and their
                synonyms are never suggested.

        Returns:
            List[TagSuggestion]: probability is the cosine similarity.
        """
        trainer = self.trainer
        if not trainer.tag_embeddings:
            logger.debug("No tags trained")
            return []

        embedding = trainer.embed(text)
        doc_words = set(tokenize(preprocess_text(text)))

        tags = candidate_tags(trainer, whitelist)
        existing = suppressed_tags(existing_tags)
        logger.debug("Evaluating %d tags", len(tags))

        candidates: List[Candidate] = []
        for tag in tags:
            if normalize_tag(tag) in existing:
                continue

            similarity = cosine_similarity(embedding, trainer.tag_embeddings[tag])
            overlap = lexical_overlap(trainer.distinctive_words(tag), doc_words)

            if passes_filter(similarity, overlap, min_similarity):
                candidates.append(Candidate(tag, similarity, overlap))

        candidates.sort(key=combined_score, reverse=True)

        logger.debug(
            "Top results: %s",
            ", ".join(f"{c.tag}: {c.probability:.2%} (overlap: {c.overlap:.0%})" for c in candidates[:5]),
        )

        return [
            TagSuggestion(tag=c.tag, probability=c.probability)
            for c in candidates[:max(0, max_results)]
        ]

    # ------------------------------------------------------
    # STATS + PERSISTENCE
    # ------------------------------------------------------

    def get_stats(self) -> ClassifierStats:
        return ClassifierStats(
            total_docs=self.trainer.total_docs,
            total_tags=len(self.trainer.tag_embeddings),
        )

    def get_all_tags(self) -> List[str]:
        return sorted(self.trainer.tag_embeddings)

    def get_tag_doc_count(self, tag: str) -> int:
        return self.trainer.tag_doc_count(tag)

    def export_data(self) -> dict:
        return self.trainer.snapshot().to_payload()

    def import_data(self, data) -> None:
        """Load an exported snapshot. Raises InvalidSnapshotError on a malformed payload."""
        self.trainer.restore(ClassifierSnapshot.from_payload(data))

    def reset(self) -> None:
        self.trainer.reset()
