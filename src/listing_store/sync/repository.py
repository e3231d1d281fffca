"""
listing-store — content repository synchronizer.

Purpose
- Keep the local content tree in step with the configured data repository.

What should be included in this file
- Throttled pull of an existing checkout, fresh clone otherwise.
- Conflict recovery: save local edits upstream, retry, else re-clone.
- Bootstrap of a minimal content tree when no repository is configured or reachable.

Functional requirements
- A failed re-clone never destroys the existing checkout.
- Credentials never appear in logs or error messages.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from listing_store.config.settings import StoreSettings
from listing_store.constants import DATA_DIR, SITE_CONFIG_FILENAME
from listing_store.observability import get_logger
from listing_store.sync.git_engine import (
    GitAuthor,
    GitBranchError,
    GitConflictError,
    GitEngine,
    GitEngineError,
)
from listing_store.utils.fs import safe_delete

_LOGGER = get_logger("sync")

SyncAction = Literal["bootstrap", "skipped", "pulled", "cloned", "recloned", "fallback"]
EngineFactory = Callable[[Path], GitEngine]

_CLONE_SUFFIX = ".sync-clone"


class ContentPathError(RuntimeError):
    """Raised when the content path cannot hold a content tree."""


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    action: SyncAction
    message: str = ""
    head: str | None = None

    @property
    def ok(self) -> bool:
        return self.action != "fallback"


def default_site_config(year: int) -> str:
    return f"site_name: Website\nitem_name: Item\nitems_name: Items\ncopyright_year: {year}\n"


class RepositorySynchronizer:
    """Clone or pull the data repository into ``content.content_path``."""

    def __init__(
        self,
        settings: StoreSettings,
        *,
        engine_factory: EngineFactory | None = None,
        clock: Callable[[], float] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._engine_factory = engine_factory or self._default_engine
        self._clock = clock or time.monotonic
        self._now = now or (lambda: datetime.now(UTC))
        self._last_synced: float | None = None

    @property
    def root(self) -> Path:
        return self._settings.content.content_path

    @property
    def last_synced(self) -> float | None:
        return self._last_synced

    def should_sync(self) -> bool:
        if self._last_synced is None:
            return True
        return self._clock() - self._last_synced >= self._settings.sync.throttle_seconds

    def sync(self) -> SyncOutcome:
        content = self._settings.content
        if not content.has_repository:
            _LOGGER.warning("no data repository configured; content features will be limited")
            self.ensure_minimal_content()
            return SyncOutcome(action="bootstrap", message="no data repository configured")

        engine = self._engine_factory(self.root)
        if engine.is_repository():
            if not self.should_sync():
                return SyncOutcome(action="skipped", message="sync throttled", head=engine.head())
            self._last_synced = self._clock()
            _LOGGER.info("pulling repository data")
            try:
                action = self.pull_changes(engine)
                return SyncOutcome(action=action, message="repository updated", head=engine.head())
            except GitEngineError as exc:
                _LOGGER.error("repository pull failed, trying a fresh clone: %s", exc)

        _LOGGER.info("cloning repository")
        try:
            self._clone_fresh()
        except (GitEngineError, OSError) as exc:
            _LOGGER.error("failed to clone repository: %s", exc)
            _LOGGER.warning("continuing with local content only")
            self.ensure_minimal_content()
            return SyncOutcome(action="fallback", message=str(exc))
        self._last_synced = self._clock()
        return SyncOutcome(action="cloned", message="repository cloned", head=self._engine_factory(self.root).head())

    def pull_changes(self, engine: GitEngine) -> SyncAction:
        """Pull, recovering from conflicts and missing branches; other errors propagate."""

        url = self._settings.content.data_repository
        branch = self._settings.content.branch or None
        try:
            engine.pull(url, branch)
            return "pulled"
        except GitConflictError:
            _LOGGER.error("conflict detected, checking for local changes")
            engine.abort_merge()
            if self._has_local_changes(engine):
                _LOGGER.info("found local changes, attempting to push first")
                if self._push_local_changes(engine, url):
                    _LOGGER.info("push succeeded, retrying pull")
                    try:
                        engine.pull(url, branch)
                        return "pulled"
                    except GitEngineError as exc:
                        _LOGGER.error("retry pull failed after push, resetting: %s", exc)
                        engine.abort_merge()
                else:
                    _LOGGER.warning("push failed, local changes will be lost; resetting")
            _LOGGER.info("resetting repository")
            self._clone_fresh()
            return "recloned"
        except GitBranchError:
            _LOGGER.error("repository branch issue detected, cloning fresh")
            self._clone_fresh()
            return "recloned"

    def ensure_minimal_content(self) -> None:
        """Create ``data/`` and a default ``config.yml`` when they are missing."""

        config_path = self.root / SITE_CONFIG_FILENAME
        try:
            (self.root / DATA_DIR).mkdir(parents=True, exist_ok=True)
            if not config_path.exists():
                config_path.write_text(default_site_config(self._now().year), encoding="utf-8")
        except OSError as exc:
            raise ContentPathError(f"content path {self.root} is not usable: {exc}") from exc

    def _has_local_changes(self, engine: GitEngine) -> bool:
        try:
            return engine.has_local_changes()
        except GitEngineError as exc:
            _LOGGER.error("failed to check local changes: %s", exc)
            return False

    def _push_local_changes(self, engine: GitEngine, url: str) -> bool:
        stamp = self._now().astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        try:
            engine.add_all()
            engine.commit(f"[Auto] Save local changes before sync - {stamp}")
            engine.push(url)
        except GitEngineError as exc:
            _LOGGER.error("failed to push local changes: %s", exc)
            return False
        return True

    def _clone_fresh(self) -> None:
        """Clone beside the checkout, then swap it in; the old tree survives a failed clone."""

        content = self._settings.content
        root = self.root
        staging = root.with_name(root.name + _CLONE_SUFFIX)
        root.parent.mkdir(parents=True, exist_ok=True)
        if staging.exists() or staging.is_symlink():
            safe_delete(staging, root.parent)

        try:
            self._engine_factory(staging).clone(content.data_repository, content.branch or None)
        except GitEngineError:
            if staging.exists():
                safe_delete(staging, root.parent)
            raise

        if root.exists() or root.is_symlink():
            safe_delete(root, root.parent)
        staging.rename(root)

    def _default_engine(self, path: Path) -> GitEngine:
        sync = self._settings.sync
        return GitEngine(
            path,
            token=self._settings.content.token,
            author=GitAuthor(name=sync.author_name, email=sync.author_email),
            timeout_seconds=sync.git_timeout_seconds,
            push_timeout_seconds=sync.push_timeout_seconds,
        )


__all__ = [
    "ContentPathError",
    "EngineFactory",
    "RepositorySynchronizer",
    "SyncAction",
    "SyncOutcome",
    "default_site_config",
]
