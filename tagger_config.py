"""
Auto Tagger - Configuration Module
Manages tag collections, classification parameters and logging
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


DEFAULT_THRESHOLD = 0.3
DEFAULT_MAX_TAGS = 5
DEFAULT_COLLECTION_ID = "default"
DEFAULT_COLLECTION_NAME = "Default Collection"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _split_list(value) -> List[str]:
    """Accept a list or a comma-separated string; strip entries and drop empty ones."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


class CollectionSettings(BaseModel):
    """
    One tag collection: an independent classifier with its own folder
    scope, tag filters and classification parameters.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    folder_mode: Literal["all", "include", "exclude"] = Field(default="all", alias="folderMode")
    include_folders: List[str] = Field(default_factory=list, alias="includeFolders")
    exclude_folders: List[str] = Field(default_factory=list, alias="excludeFolders")
    whitelist: List[str] = Field(default_factory=list)
    blacklist: List[str] = Field(default_factory=list)
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0.0, le=1.0)
    max_tags: int = Field(default=DEFAULT_MAX_TAGS, ge=1, le=10, alias="maxTags")
    enabled: bool = True
    last_trained: Optional[int] = Field(default=None, alias="lastTrained")
    classifier_data: Optional[Dict[str, Any]] = Field(default=None, alias="classifierData")

    @field_validator("whitelist", "blacklist", mode="before")
    def clean_tag_list(cls, value):
        """Tags are compared lowercase: "Todo, Draft" -> ["todo", "draft"]."""
        return [t.lower() for t in _split_list(value)]

    @field_validator("include_folders", "exclude_folders", mode="before")
    def clean_folder_list(cls, value):
        return _split_list(value)

    def in_scope(self, path: str) -> bool:
        """Whether a note path belongs to this collection. Pure string matching."""
        if self.folder_mode == "all":
            return True

        def under(folder: str) -> bool:
            return path.startswith(folder + "/") or path.startswith(folder + "\\")

        if self.folder_mode == "include":
            return any(under(f) for f in self.include_folders)
        return not any(under(f) for f in self.exclude_folders)


class AutoTaggerSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collections: List[CollectionSettings] = Field(default_factory=list)
    active_collection_id: Optional[str] = Field(default=None, alias="activeCollectionId")
    auto_tag_on_save: bool = Field(default=False, alias="autoTagOnSave")
    debug_to_console: bool = Field(default=False, alias="debugToConsole")
    default_threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0.0, le=1.0, alias="defaultThreshold")
    default_max_tags: int = Field(default=DEFAULT_MAX_TAGS, ge=1, le=10, alias="defaultMaxTags")
    classifier_type: Literal["basic", "advanced"] = Field(default="basic", alias="classifierType")

    def get_collection(self, collection_id: str) -> Optional[CollectionSettings]:
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None

    def add_collection(self, name: str, **overrides) -> CollectionSettings:
        """Create a collection with the default threshold/max tags and make it active."""
        fields = {
            "id": uuid.uuid4().hex[:12],
            "name": name,
            "threshold": self.default_threshold,
            "max_tags": self.default_max_tags,
        }
        fields.update(overrides)
        collection = CollectionSettings(**fields)
        self.collections.append(collection)
        self.active_collection_id = collection.id
        return collection

    def remove_collection(self, collection_id: str) -> None:
        self.collections = [c for c in self.collections if c.id != collection_id]
        if self.active_collection_id == collection_id:
            self.active_collection_id = self.collections[0].id if self.collections else None


# ============================================================
#                 LOAD / SAVE
# ============================================================

def migrate_settings(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert the legacy flat settings layout into a single default collection.
    Data that already has a `collections` list is returned unchanged.
    """
    if isinstance(data.get("collections"), list):
        return data

    logger.debug("Migrating settings to collection-based format")

    threshold = data.get("threshold")
    if threshold is None:
        threshold = DEFAULT_THRESHOLD
    max_tags = data.get("maxTags", data.get("max_tags"))
    if max_tags is None:
        max_tags = DEFAULT_MAX_TAGS

    default_collection = {
        "id": DEFAULT_COLLECTION_ID,
        "name": DEFAULT_COLLECTION_NAME,
        "folderMode": data.get("folderMode") or "all",
        "includeFolders": data.get("includeFolders") or [],
        "excludeFolders": data.get("excludeFolders") or [],
        "whitelist": data.get("whitelist") or [],
        "blacklist": data.get("blacklist") or [],
        "threshold": threshold,
        "maxTags": max_tags,
        "classifierData": data.get("classifierData") or None,
        "enabled": True,
        "lastTrained": None,
    }

    return {
        "collections": [default_collection],
        "activeCollectionId": DEFAULT_COLLECTION_ID,
        "autoTagOnSave": bool(data.get("autoTagOnSave", False)),
        "debugToConsole": bool(data.get("debugToConsole", False)),
        "defaultThreshold": threshold,
        "defaultMaxTags": max_tags,
    }


def load_settings(path: Union[str, Path]) -> AutoTaggerSettings:
    """
    Load settings from a YAML file. A missing file gives defaults; legacy
    (or empty) content is migrated to a single default collection.
    Invalid content raises pydantic.ValidationError.
    """
    path = Path(path)
    if not path.exists():
        return AutoTaggerSettings()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return AutoTaggerSettings.model_validate(migrate_settings(raw))


def save_settings(settings: AutoTaggerSettings, path: Union[str, Path]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(settings.model_dump(), f, default_flow_style=False, sort_keys=False)


def configure_logging(debug: bool = False) -> None:
    """Send library logs to stderr; DEBUG output only when `debug` is set."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )
