"""
listing-store — cache invalidation.

Purpose
- Detect content tree changes from filesystem mtimes and the checked-out commit.
- Clear every cache tier when the tree changed or a sync completed.

Functional requirements
- ``.git`` and ``backups`` are excluded from the fingerprint.
- Listeners are notified with the invalidation reason after caches are cleared.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from listing_store.cache.store import ContentCache
from listing_store.constants import BACKUPS_DIR
from listing_store.observability import get_logger

_LOGGER = get_logger("cache")

_EXCLUDED_DIRS = frozenset({".git", BACKUPS_DIR})

InvalidationListener = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class ContentFingerprint:
    latest_mtime_ns: int
    file_count: int
    head: str | None = None


def fingerprint_content(root: Path) -> ContentFingerprint:
    """Snapshot the newest mtime and file count under ``root``."""

    if not root.is_dir():
        return ContentFingerprint(latest_mtime_ns=0, file_count=0, head=None)

    latest = root.stat().st_mtime_ns
    count = 0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current = Path(dirpath)
        for name in dirnames:
            latest = max(latest, _mtime_ns(current / name))
        for name in filenames:
            count += 1
            latest = max(latest, _mtime_ns(current / name))
    return ContentFingerprint(latest_mtime_ns=latest, file_count=count, head=read_head(root))


def read_head(root: Path) -> str | None:
    """Return the checked-out commit id without spawning git."""

    git_dir = root / ".git"
    try:
        head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not head.startswith("ref:"):
        return head or None

    ref = head.partition(":")[2].strip()
    try:
        return (git_dir / ref).read_text(encoding="utf-8").strip() or None
    except OSError:
        pass
    try:
        packed = (git_dir / "packed-refs").read_text(encoding="utf-8")
    except OSError:
        return None
    for line in packed.splitlines():
        if line.startswith(("#", "^")):
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref:
            return sha
    return None


class CacheInvalidator:
    """Clear content caches when the content tree changes."""

    def __init__(self, cache: ContentCache, root: Path, *, check_mtime: bool = True) -> None:
        self._cache = cache
        self._root = root
        self._check_mtime = check_mtime
        self._lock = threading.Lock()
        self._fingerprint: ContentFingerprint | None = None
        self._listeners: list[InvalidationListener] = []

    @property
    def fingerprint(self) -> ContentFingerprint | None:
        return self._fingerprint

    def add_listener(self, listener: InvalidationListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: InvalidationListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def check(self) -> bool:
        """Invalidate every tier if the fingerprint moved; return whether it did."""

        if not self._check_mtime:
            return False
        current = fingerprint_content(self._root)
        with self._lock:
            previous = self._fingerprint
            self._fingerprint = current
        if previous is None or previous == current:
            return False
        _LOGGER.info(
            "content tree changed; invalidating caches",
            extra={"file_count": current.file_count, "head": current.head},
        )
        self._invalidate("mtime")
        return True

    def invalidate_content_caches(self, reason: str = "sync") -> None:
        current = fingerprint_content(self._root)
        with self._lock:
            self._fingerprint = current
        self._invalidate(reason)

    def _invalidate(self, reason: str) -> None:
        dropped = self._cache.invalidate()
        _LOGGER.debug("cleared %d cached entries (%s)", dropped, reason)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(reason)


def _mtime_ns(path: Path) -> int:
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return 0


__all__ = [
    "CacheInvalidator",
    "ContentFingerprint",
    "InvalidationListener",
    "fingerprint_content",
    "read_head",
]
