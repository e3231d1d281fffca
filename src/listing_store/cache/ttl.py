"""Thread-safe TTL cache with per-tier defaults and hit/miss counters."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from enum import Enum
from typing import Final, Generic, TypeVar

from listing_store.constants import (
    COLLECTIONS_TTL_SECONDS,
    CONFIG_TTL_SECONDS,
    ITEMS_TTL_SECONDS,
    SIMILARITY_TTL_SECONDS,
)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class CacheTier(str, Enum):
    """Named cache tiers; each has its own TTL."""

    CONFIG = "config"
    ITEMS = "items"
    COLLECTIONS = "collections"
    SIMILARITY = "similarity"


DEFAULT_TIER_TTLS: Final[dict[CacheTier, float]] = {
    CacheTier.CONFIG: CONFIG_TTL_SECONDS,
    CacheTier.ITEMS: ITEMS_TTL_SECONDS,
    CacheTier.COLLECTIONS: COLLECTIONS_TTL_SECONDS,
    CacheTier.SIMILARITY: SIMILARITY_TTL_SECONDS,
}


@dataclass(slots=True)
class _Entry(Generic[V]):
    value: V
    expires_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int
    expirations: int
    ttl_seconds: float

    def as_dict(self) -> dict[str, float | int]:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "ttl_seconds": self.ttl_seconds,
        }


class TTLCache(Generic[K, V]):
    """
    In-memory key/value cache whose entries expire ``ttl_seconds`` after insertion.

    When ``max_entries`` is set and the cache is full, the oldest inserted entry
    is evicted to make room.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int | None = None,
        clock: Clock | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self._ttl = float(ttl_seconds)
        self._max_entries = max_entries
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._entries: OrderedDict[K, _Entry[V]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[call-overload]
            return entry is not None and entry.expires_at > self._clock()

    def get(self, key: K) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: K, value: V, *, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl if ttl_seconds is None else float(ttl_seconds)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif self._max_entries is not None and len(self._entries) >= self._max_entries:
                self._purge_expired()
                while len(self._entries) >= self._max_entries:
                    self._entries.popitem(last=False)
                    self._evictions += 1
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def get_or_load(self, key: K, loader: Callable[[], V]) -> V:
        """Return the cached value or compute, store, and return it."""

        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is not None and entry.expires_at > now:
                self._hits += 1
                return entry.value
            if entry is not None:
                del self._entries[key]
                self._expirations += 1
            self._misses += 1

        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped

    def stats(self) -> CacheStats:
        with self._lock:
            self._purge_expired()
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                ttl_seconds=self._ttl,
            )

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)


__all__ = [
    "CacheStats",
    "CacheTier",
    "Clock",
    "DEFAULT_TIER_TTLS",
    "TTLCache",
]
