# tag_hierarchy.py
"""
Infer parent/child links between known tags from their names.

A tag is a child of another when the parent's name is contained in the
child's name ("python-django" -> "python"), or when a curated relation
matches ("neural-networks" -> "ai"). The heuristic is approximate: any tag
whose name merely contains "ai" as letters also counts as a child of "ai".
"""

import logging
import re
from typing import Dict, Iterable, List, Set

logger = logging.getLogger(__name__)


SEMANTIC_HIERARCHY: Dict[str, List[str]] = {
    "ai": ["artificial intelligence", "machine learning", "deep learning", "neural network"],
    "programming": ["python", "javascript", "typescript", "java", "coding", "development"],
    "learning": ["machine learning", "deep learning", "reinforcement learning"],
    "data": ["data science", "data analysis", "database", "dataset"],
    "web": ["web development", "frontend", "backend", "fullstack"],
    "science": ["data science", "computer science", "research"],
}

NAME_SEPARATOR_RE = re.compile(r"[_-]")


def readable_name(tag: str) -> str:
    """Lowercase with "_" and "-" turned into spaces."""
    return NAME_SEPARATOR_RE.sub(" ", tag.lower())


def is_semantic_child(child: str, parent: str) -> bool:
    """
    Check the curated table. Both names are expected in readable form.
    """
    for parent_key, children in SEMANTIC_HIERARCHY.items():
        if parent_key in parent and any(c in child for c in children):
            return True
    return False


class TagHierarchy:
    """Bidirectional child -> parents / parent -> children maps."""

    def __init__(self):
        self._parents: Dict[str, Set[str]] = {}
        self._children: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        """Number of child -> parent links."""
        return sum(len(parents) for parents in self._parents.values())

    def clear(self) -> None:
        self._parents.clear()
        self._children.clear()

    def link(self, child: str, parent: str) -> None:
        self._parents.setdefault(child, set()).add(parent)
        self._children.setdefault(parent, set()).add(child)

    def parents_of(self, tag: str) -> Set[str]:
        return set(self._parents.get(tag, ()))

    def children_of(self, tag: str) -> Set[str]:
        return set(self._children.get(tag, ()))

    def children_of_ignore_case(self, tag: str) -> Set[str]:
        """Children of every parent whose name equals `tag` ignoring case."""
        tag = tag.lower()
        children: Set[str] = set()
        for parent, kids in self._children.items():
            if parent.lower() == tag:
                children |= kids
        return children

    def build(self, tags: Iterable[str]) -> None:
        """Rebuild from scratch for the given tag names."""
        self.clear()
        tags = list(tags)
        readable = {tag: readable_name(tag) for tag in tags}

        for tag in tags:
            name = readable[tag]
            for potential_parent in tags:
                if tag == potential_parent:
                    continue
                parent_name = readable[potential_parent]
                if parent_name in name or is_semantic_child(name, parent_name):
                    self.link(tag, potential_parent)

        logger.debug(
            "Built tag hierarchy: %s",
            [f"{tag} -> [{', '.join(sorted(parents))}]" for tag, parents in self._parents.items()],
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {tag: sorted(parents) for tag, parents in self._parents.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Iterable[str]]) -> "TagHierarchy":
        hierarchy = cls()
        for tag, parents in data.items():
            for parent in parents:
                hierarchy.link(tag, parent)
        return hierarchy
