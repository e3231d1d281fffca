"""Typed runtime settings derived from a validated config mapping."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from listing_store.config.schema import default_config


@dataclass(frozen=True, slots=True)
class ContentSettings:
    """Where the content tree lives and where it is synced from."""

    content_path: Path
    data_repository: str = ""
    branch: str = ""
    token: str | None = field(default=None, repr=False)
    default_lang: str = "en"

    @property
    def has_repository(self) -> bool:
        return bool(self.data_repository)


@dataclass(frozen=True, slots=True)
class SyncSettings:
    enabled: bool = True
    throttle_seconds: float = 10.0
    interval_seconds: float = 60.0
    timeout_seconds: float = 300.0
    retry_delay_seconds: float = 10.0
    max_retries: int = 3
    git_timeout_seconds: float = 120.0
    push_timeout_seconds: float = 60.0
    author_name: str = "Website Bot"
    author_email: str = "website-bot@example.invalid"


@dataclass(frozen=True, slots=True)
class CacheSettings:
    enabled: bool = True
    check_mtime: bool = True
    max_entries: int = 256
    config_ttl_seconds: float = 60.0
    items_ttl_seconds: float = 300.0
    collections_ttl_seconds: float = 600.0
    similarity_ttl_seconds: float = 1800.0


@dataclass(frozen=True, slots=True)
class FileSettings:
    create_backups: bool = True
    backup_dir: Path | None = None
    yaml_indent: int = 2


@dataclass(frozen=True, slots=True)
class StoreSettings:
    """Aggregated settings consumed by the content service, caches, and sync manager."""

    content: ContentSettings
    sync: SyncSettings = field(default_factory=SyncSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    files: FileSettings = field(default_factory=FileSettings)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        environ: Mapping[str, str] | None = None,
    ) -> StoreSettings:
        """Build settings from a validated config, resolving the git token from env."""

        env_map = os.environ if environ is None else environ
        content = config["content"]
        sync = config["sync"]
        cache = config["cache"]
        files = config["files"]

        token_env = content["token_env"]
        raw_token = env_map.get(token_env, "").strip()
        backup_dir = files["backup_dir"]

        return cls(
            content=ContentSettings(
                content_path=Path(content["content_path"]),
                data_repository=content["data_repository"],
                branch=content["branch"],
                token=raw_token or None,
                default_lang=content["default_lang"],
            ),
            sync=SyncSettings(
                enabled=sync["enabled"],
                throttle_seconds=sync["throttle_seconds"],
                interval_seconds=sync["interval_seconds"],
                timeout_seconds=sync["timeout_seconds"],
                retry_delay_seconds=sync["retry_delay_seconds"],
                max_retries=sync["max_retries"],
                git_timeout_seconds=sync["git_timeout_seconds"],
                push_timeout_seconds=sync["push_timeout_seconds"],
                author_name=sync["author_name"],
                author_email=sync["author_email"],
            ),
            cache=CacheSettings(
                enabled=cache["enabled"],
                check_mtime=cache["check_mtime"],
                max_entries=cache["max_entries"],
                config_ttl_seconds=cache["config_ttl_seconds"],
                items_ttl_seconds=cache["items_ttl_seconds"],
                collections_ttl_seconds=cache["collections_ttl_seconds"],
                similarity_ttl_seconds=cache["similarity_ttl_seconds"],
            ),
            files=FileSettings(
                create_backups=files["create_backups"],
                backup_dir=Path(backup_dir) if backup_dir else None,
                yaml_indent=files["yaml_indent"],
            ),
        )

    @classmethod
    def for_content_path(cls, content_path: Path | str, **content_fields: Any) -> StoreSettings:
        """Defaults rooted at ``content_path``; used by tests and one-off tooling."""

        base = cls.from_config(default_config(), environ={})
        return replace(
            base,
            content=replace(base.content, content_path=Path(content_path), **content_fields),
        )


__all__ = [
    "CacheSettings",
    "ContentSettings",
    "FileSettings",
    "StoreSettings",
    "SyncSettings",
]
