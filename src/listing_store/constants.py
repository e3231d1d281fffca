"""Stable constants shared across the content, cache, and sync layers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Content tree layout (relative to the content root).
DEFAULT_CONTENT_DIR: Final[PurePosixPath] = PurePosixPath(".content")
DATA_DIR: Final[str] = "data"
BACKUPS_DIR: Final[str] = "backups"
SITE_CONFIG_FILENAME: Final[str] = "config.yml"
YAML_EXTENSION: Final[str] = ".yml"
BODY_EXTENSIONS: Final[tuple[str, ...]] = (".mdx", ".md")
COLLECTION_KINDS: Final[tuple[str, ...]] = ("categories", "tags")
DEFAULT_LANG: Final[str] = "en"
ITEM_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d %H:%M"

# Cache tier TTLs in seconds.
CONFIG_TTL_SECONDS: Final[float] = 60.0
ITEMS_TTL_SECONDS: Final[float] = 300.0
COLLECTIONS_TTL_SECONDS: Final[float] = 600.0
SIMILARITY_TTL_SECONDS: Final[float] = 1800.0
DEFAULT_CACHE_MAX_ENTRIES: Final[int] = 256

# Repository sync timings in seconds.
SYNC_THROTTLE_SECONDS: Final[float] = 10.0
SYNC_INTERVAL_SECONDS: Final[float] = 60.0
SYNC_TIMEOUT_SECONDS: Final[float] = 300.0
SYNC_RETRY_DELAY_SECONDS: Final[float] = 10.0
SYNC_MAX_RETRIES: Final[int] = 3
GIT_OPERATION_TIMEOUT_SECONDS: Final[float] = 120.0
GIT_PUSH_TIMEOUT_SECONDS: Final[float] = 60.0

# Git identity and auth.
GIT_AUTH_USERNAME: Final[str] = "x-access-token"
DEFAULT_AUTHOR_NAME: Final[str] = "Website Bot"
DEFAULT_AUTHOR_EMAIL: Final[str] = "website-bot@example.invalid"

# Similarity weights (categories vs tags).
SIMILARITY_CATEGORY_WEIGHT: Final[float] = 0.6
SIMILARITY_TAG_WEIGHT: Final[float] = 0.4
DEFAULT_SIMILAR_LIMIT: Final[int] = 6

__all__ = [
    "BACKUPS_DIR",
    "BODY_EXTENSIONS",
    "COLLECTIONS_TTL_SECONDS",
    "COLLECTION_KINDS",
    "CONFIG_SCHEMA_VERSION",
    "CONFIG_TTL_SECONDS",
    "DATA_DIR",
    "DEFAULT_AUTHOR_EMAIL",
    "DEFAULT_AUTHOR_NAME",
    "DEFAULT_CACHE_MAX_ENTRIES",
    "DEFAULT_CONTENT_DIR",
    "DEFAULT_LANG",
    "DEFAULT_SIMILAR_LIMIT",
    "GIT_AUTH_USERNAME",
    "GIT_OPERATION_TIMEOUT_SECONDS",
    "GIT_PUSH_TIMEOUT_SECONDS",
    "ITEMS_TTL_SECONDS",
    "ITEM_TIMESTAMP_FORMAT",
    "SIMILARITY_CATEGORY_WEIGHT",
    "SIMILARITY_TAG_WEIGHT",
    "SIMILARITY_TTL_SECONDS",
    "SITE_CONFIG_FILENAME",
    "SYNC_INTERVAL_SECONDS",
    "SYNC_MAX_RETRIES",
    "SYNC_RETRY_DELAY_SECONDS",
    "SYNC_THROTTLE_SECONDS",
    "SYNC_TIMEOUT_SECONDS",
    "YAML_EXTENSION",
]
