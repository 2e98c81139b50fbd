# advanced_classifier.py
"""
Advanced tag classifier: the base embeddings plus
1. n-gram lexical overlap (bigrams/trigrams, overlap check only)
2. tag hierarchy inferred from tag names
3. re-ranking from accumulated user feedback

It shares the TagTrainer and the scoring helpers of tag_classifier.py
instead of inheriting from EmbeddingClassifier. N-grams only feed the
overlap check, never the embedding vector.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Set

import numpy as np

from classifier_models import AdvancedClassifierSnapshot, AdvancedStats, ClassifierStats, TagSuggestion
from embeddings import cosine_similarity
from feedback import FeedbackTracker
from tag_classifier import Candidate, candidate_tags, lexical_overlap, normalize_tag, suppressed_tags
from tag_hierarchy import TagHierarchy
from text_preprocessing import preprocess_text, tokenize
from trainer import TagTrainer

logger = logging.getLogger(__name__)


MAX_NGRAM_SIZE = 3

# Pass when similarity is high on its own, or moderate with some word evidence.
HIGH_SIMILARITY = 0.55
MODERATE_SIMILARITY = 0.45
MIN_OVERLAP = 0.25

HIERARCHY_BOOST = 1.2
HIERARCHY_SUGGESTION_PROBABILITY = 0.15


# ------------------------------------------------------
# N-GRAMS + SCORING
# ------------------------------------------------------

def generate_ngrams(words: Sequence[str]) -> List[str]:
    """
    Unigrams, then contiguous bigrams, then trigrams, joined with "_":

        ["deep", "neural", "nets"] ->
        ["deep", "neural", "nets", "deep_neural", "neural_nets", "deep_neural_nets"]
    """
    ngrams = list(words)
    for size in range(2, MAX_NGRAM_SIZE + 1):
        for i in range(len(words) - size + 1):
            ngrams.append("_".join(words[i:i + size]))
    return ngrams


def passes_relaxed_filter(similarity: float, overlap: float) -> bool:
    if similarity >= HIGH_SIMILARITY:
        return True
    return similarity >= MODERATE_SIMILARITY and overlap >= MIN_OVERLAP


def similarity_weight(similarity: float) -> float:
    if similarity >= 0.60:
        return 0.8
    if similarity >= 0.40:
        return 0.6
    return 0.5


def tiered_score(candidate: Candidate) -> float:
    weight = similarity_weight(candidate.probability)
    return candidate.probability * weight + candidate.overlap * (1 - weight)


# ------------------------------------------------------
# CLASSIFIER
# ------------------------------------------------------

class AdvancedEmbeddingClassifier:
    def __init__(self, trainer: Optional[TagTrainer] = None):
        self.trainer = trainer or TagTrainer()
        self.hierarchy = TagHierarchy()
        self.feedback = FeedbackTracker()

    def train(self, text: str, tags: Iterable[str]) -> None:
        self.trainer.train(text, tags)

    def finalize_training(self) -> None:
        self.trainer.finalize_training()
        self.hierarchy.build(self.trainer.tags)
        logger.debug("Advanced training finalized")

    def generate_embedding(self, text: str, normalize: bool = True) -> np.ndarray:
        """Base embedding plus diagnostics for NaN/Infinity values."""
        embedding = self.trainer.embed(text, normalize=normalize)
        logger.debug(
            "Generated embedding with %d non-zero dims (text length %d, normalize=%s)",
            int(np.count_nonzero(embedding)), len(text or ""), normalize,
        )

        nan_count = int(np.isnan(embedding).sum())
        inf_count = int(np.isinf(embedding).sum())
        if nan_count or inf_count:
            logger.error(
                "Generated embedding contains invalid values: %d NaN, %d Infinity; text preview: %r",
                nan_count, inf_count, (text or "")[:200],
            )
        return embedding

    def corrupted_tags(self) -> List[str]:
        """Tags whose centroid has non-finite values or zero magnitude."""
        corrupted = []
        for tag, centroid in self.trainer.tag_embeddings.items():
            magnitude = float(np.sqrt(np.sum(centroid * centroid)))
            if not np.all(np.isfinite(centroid)) or not np.isfinite(magnitude) or magnitude == 0:
                logger.warning("Tag %r has corrupted embedding (magnitude: %s)", tag, magnitude)
                corrupted.append(tag)
        return corrupted

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

        Same inputs as EmbeddingClassifier.classify. The pass rule is fixed
        (similarity >= 0.55, or >= 0.45 with 25% overlap), so `min_similarity`
        is accepted for interface compatibility only. Returns [] when any
        centroid is corrupted: the collection needs retraining.
        """
        existing_tags = list(existing_tags or ())
        trainer = self.trainer

        logger.debug(
            "Starting classification: %d chars, max results %d, existing tags: %s",
            len(text or ""), max_results, ", ".join(existing_tags) or "none",
        )

        if not trainer.tag_embeddings:
            logger.debug("No tags trained")
            return []

        corrupted = self.corrupted_tags()
        if corrupted:
            logger.error("%d tags have corrupted embeddings. Please retrain the collection.", len(corrupted))
            return []

        embedding = self.generate_embedding(text)
        doc_tokens = set(generate_ngrams(tokenize(preprocess_text(text))))

        tags = candidate_tags(trainer, whitelist)
        existing = suppressed_tags(existing_tags)
        logger.debug("Tags to evaluate: %d", len(tags))

        candidates: List[Candidate] = []
        for tag in tags:
            if normalize_tag(tag) in existing:
                continue

            similarity = cosine_similarity(embedding, trainer.tag_embeddings[tag])
            overlap = lexical_overlap(trainer.distinctive_words(tag), doc_tokens)

            if passes_relaxed_filter(similarity, overlap):
                candidates.append(Candidate(tag, similarity, overlap))

        candidates.sort(key=tiered_score, reverse=True)

        logger.debug("Found %d candidates after filtering", len(candidates))
        for c in candidates[:10]:
            logger.debug("  %s: similarity=%.1f%%, overlap=%.0f%%", c.tag, c.probability * 100, c.overlap * 100)

        limit = max(0, max_results)
        results = [TagSuggestion(tag=c.tag, probability=c.probability) for c in candidates[:limit * 2]]

        results = self.enhance_with_hierarchy(results, existing_tags, allowed=set(tags), suppressed=existing)
        results = self.adjust_with_feedback(results)
        results.sort(key=lambda r: r.probability, reverse=True)

        final = [
            TagSuggestion(tag=r.tag, probability=min(1.0, r.probability))
            for r in results[:limit]
        ]
        logger.debug(
            "Returning %d final suggestions: %s",
            len(final), ", ".join(f"{r.tag} ({r.probability:.1%})" for r in final),
        )
        return final

    # ------------------------------------------------------
    # POST-PROCESSING
    # ------------------------------------------------------

    def enhance_with_hierarchy(
        self,
        results: List[TagSuggestion],
        existing_tags: Iterable[str],
        allowed: Optional[Set[str]] = None,
        suppressed: Optional[Set[str]] = None,
    ) -> List[TagSuggestion]:
        """
        Boost suggestions whose parent tag is already on the document, and
        add known children of those parents at a low flat probability.
        """
        enhanced = list(results)
        by_tag = {r.tag.lower(): r for r in results}
        existing_lower = list(dict.fromkeys(t.lower() for t in existing_tags))
        existing_set = set(existing_lower)
        suppressed = suppressed or set()
        injected: Set[str] = set()

        for existing_tag in existing_lower:
            for child in sorted(self.hierarchy.children_of_ignore_case(existing_tag)):
                match = by_tag.get(child.lower())
                if match is not None:
                    match.probability *= HIERARCHY_BOOST
                    continue

                if child.lower() in existing_set or child in injected or normalize_tag(child) in suppressed:
                    continue
                if self.trainer.centroid(child) is None:
                    continue
                if allowed is not None and child not in allowed:
                    continue

                enhanced.append(TagSuggestion(tag=child, probability=HIERARCHY_SUGGESTION_PROBABILITY))
                injected.add(child)

        enhanced.sort(key=lambda r: r.probability, reverse=True)
        return enhanced

    def adjust_with_feedback(self, results: List[TagSuggestion]) -> List[TagSuggestion]:
        for result in results:
            result.probability *= self.feedback.adjustment(result.tag)
        return results

    def record_feedback(self, tag: str, accepted: bool) -> None:
        self.feedback.record(tag, accepted)

    # ------------------------------------------------------
    # STATS + PERSISTENCE
    # ------------------------------------------------------

    def parents_of(self, tag: str) -> Set[str]:
        return self.hierarchy.parents_of(tag)

    def children_of(self, tag: str) -> Set[str]:
        return self.hierarchy.children_of(tag)

    def get_stats(self) -> ClassifierStats:
        return ClassifierStats(
            total_docs=self.trainer.total_docs,
            total_tags=len(self.trainer.tag_embeddings),
        )

    def get_advanced_stats(self) -> AdvancedStats:
        return AdvancedStats(
            hierarchy_relations=len(self.hierarchy),
            feedback_records=len(self.feedback),
            avg_acceptance_rate=self.feedback.average_acceptance_rate(),
        )

    def get_all_tags(self) -> List[str]:
        return sorted(self.trainer.tag_embeddings)

    def get_tag_doc_count(self, tag: str) -> int:
        return self.trainer.tag_doc_count(tag)

    def export_data(self) -> dict:
        base = self.trainer.snapshot()
        snapshot = AdvancedClassifierSnapshot(
            **base.model_dump(),
            tag_hierarchy=self.hierarchy.to_dict(),
            user_feedback=self.feedback.to_dict(),
        )
        return snapshot.to_payload()

    def import_data(self, data) -> None:
        """
        Load an exported snapshot. A snapshot without a hierarchy (e.g. one
        exported by the base classifier) gets it rebuilt from the tag names;
        feedback is only replaced when the snapshot carries some.
        """
        snapshot = AdvancedClassifierSnapshot.from_payload(data)
        self.trainer.restore(snapshot)

        if "tag_hierarchy" in snapshot.model_fields_set:
            self.hierarchy = TagHierarchy.from_dict(snapshot.tag_hierarchy)
        else:
            self.hierarchy.build(self.trainer.tags)

        if "user_feedback" in snapshot.model_fields_set:
            self.feedback = FeedbackTracker(
                {tag: counts.model_copy() for tag, counts in snapshot.user_feedback.items()}
            )

    def reset(self) -> None:
        """Forget everything learned from documents. Feedback counters are kept."""
        self.trainer.reset()
        self.hierarchy.clear()
