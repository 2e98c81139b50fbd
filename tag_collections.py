# ============================================================
#                 TAG COLLECTIONS
# ============================================================
#
# Each collection owns an independent classifier trained only on the notes
# in its folder scope, with its own whitelist/blacklist and parameters.
# Suggestions from every applicable collection are merged per tag.

import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from advanced_classifier import AdvancedEmbeddingClassifier
from classifier_models import CollectionSuggestion, InvalidSnapshotError, TagSuggestion
from tagger_config import AutoTaggerSettings, CollectionSettings
from tag_classifier import EmbeddingClassifier

logger = logging.getLogger(__name__)

Classifier = Union[EmbeddingClassifier, AdvancedEmbeddingClassifier]

# (note path, note body, tags from the note's frontmatter)
Document = Tuple[str, str, Sequence[str]]


class TagCollection:
    def __init__(self, settings: CollectionSettings, classifier_type: str = "basic"):
        self.settings = settings
        self.classifier_type = classifier_type
        self.classifier: Optional[Classifier] = None

        if settings.classifier_data:
            self.load(settings.classifier_data)

    @property
    def name(self) -> str:
        return self.settings.name

    @property
    def is_trained(self) -> bool:
        return self.classifier is not None and self.classifier.get_stats().total_docs > 0

    def new_classifier(self) -> Classifier:
        if self.classifier_type == "advanced":
            return AdvancedEmbeddingClassifier()
        return EmbeddingClassifier()

    def load(self, data: dict) -> bool:
        """Restore the classifier from a stored snapshot; leaves the collection untrained on failure."""
        classifier = self.new_classifier()
        try:
            classifier.import_data(data)
        except InvalidSnapshotError as e:
            logger.error("Failed to load classifier for %r: %s", self.name, e)
            self.classifier = None
            return False

        self.classifier = classifier
        stats = classifier.get_stats()
        logger.debug(
            "Loaded classifier for %r with %d tags trained on %d documents",
            self.name, stats.total_tags, stats.total_docs,
        )
        return True

    def filter_tags(self, tags: Iterable[str]) -> List[str]:
        """Lowercase tags and drop blacklisted ones."""
        blacklist = set(self.settings.blacklist)
        lowered = (str(t).lower() for t in tags or ())
        return [t for t in lowered if t not in blacklist]

    def train(self, documents: Iterable[Document], show_progress: bool = False) -> int:
        """
        Train a fresh classifier on the in-scope documents that still carry
        tags after blacklist filtering.

        The exported snapshot and training time are written back to the
        collection settings; the caller decides when to save them.

        Returns:
            int: number of documents trained on.
        """
        classifier = self.new_classifier()
        used = 0

        for path, text, tags in tqdm(documents, desc=f"Training {self.name}", unit="note", disable=not show_progress):
            if not self.settings.in_scope(path):
                continue
            tags = self.filter_tags(tags)
            if not tags:
                continue
            classifier.train(text, tags)
            used += 1

        classifier.finalize_training()

        self.classifier = classifier
        self.settings.classifier_data = classifier.export_data()
        self.settings.last_trained = int(time.time() * 1000)

        stats = classifier.get_stats()
        logger.info("Training complete for %r: %d notes (%d unique tags)", self.name, used, stats.total_tags)
        return used

    def suggest(self, text: str, existing_tags: Iterable[str] = ()) -> List[TagSuggestion]:
        if not self.is_trained:
            return []

        blacklist = set(self.settings.blacklist)
        suggestions = self.classifier.classify(
            text,
            self.settings.whitelist or None,
            self.settings.threshold,
            self.settings.max_tags,
            self.filter_tags(existing_tags),
        )
        return [s for s in suggestions if s.tag not in blacklist]

    def record_feedback(self, tag: str, accepted: bool) -> None:
        """Only the advanced classifier learns from feedback; the snapshot is refreshed."""
        if not isinstance(self.classifier, AdvancedEmbeddingClassifier):
            return
        self.classifier.record_feedback(tag, accepted)
        self.settings.classifier_data = self.classifier.export_data()


class CollectionRegistry:
    """All collections of one settings object, keyed by collection id."""

    def __init__(self, settings: AutoTaggerSettings):
        self.settings = settings
        self.collections: Dict[str, TagCollection] = {
            c.id: TagCollection(c, settings.classifier_type) for c in settings.collections
        }

    def get(self, collection_id: str) -> TagCollection:
        if collection_id not in self.collections:
            raise KeyError(f"Collection not found: {collection_id}")
        return self.collections[collection_id]

    def applicable(self, path: str) -> List[TagCollection]:
        return [
            c for c in self.collections.values()
            if c.settings.enabled and c.settings.in_scope(path)
        ]

    def train_collection(self, collection_id: str, documents: Iterable[Document], show_progress: bool = False) -> int:
        return self.get(collection_id).train(documents, show_progress=show_progress)

    def train_all(self, documents: Iterable[Document], show_progress: bool = False) -> Dict[str, int]:
        """Train every enabled collection on the same documents."""
        documents = list(documents)
        trained = {}
        for collection_id, collection in self.collections.items():
            if not collection.settings.enabled:
                continue
            trained[collection_id] = collection.train(documents, show_progress=show_progress)

        logger.info("Training complete: %d collections trained", len(trained))
        return trained

    def suggest(self, path: str, text: str, existing_tags: Iterable[str] = ()) -> List[CollectionSuggestion]:
        """
        Ask every applicable trained collection and keep the highest
        probability per tag.
        """
        existing_tags = list(existing_tags or ())
        best: Dict[str, CollectionSuggestion] = {}

        for collection in self.applicable(path):
            for suggestion in collection.suggest(text, existing_tags):
                current = best.get(suggestion.tag)
                if current is None or suggestion.probability > current.probability:
                    best[suggestion.tag] = CollectionSuggestion(
                        tag=suggestion.tag,
                        probability=suggestion.probability,
                        collection_name=collection.name,
                    )

        return sorted(best.values(), key=lambda s: s.probability, reverse=True)
