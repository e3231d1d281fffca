"""Per-tier content caches keyed by ``(key, lang)``."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from listing_store.cache.ttl import CacheTier, Clock, TTLCache
from listing_store.config.settings import CacheSettings
from listing_store.constants import DEFAULT_LANG
from listing_store.observability import get_logger

_LOGGER = get_logger("cache")

T = TypeVar("T")

CacheKey = tuple[str, str]


class ContentCache:
    """One ``TTLCache`` per ``CacheTier``, sized and timed from ``CacheSettings``."""

    def __init__(self, settings: CacheSettings | None = None, *, clock: Clock | None = None) -> None:
        self._settings = settings or CacheSettings()
        ttls = {
            CacheTier.CONFIG: self._settings.config_ttl_seconds,
            CacheTier.ITEMS: self._settings.items_ttl_seconds,
            CacheTier.COLLECTIONS: self._settings.collections_ttl_seconds,
            CacheTier.SIMILARITY: self._settings.similarity_ttl_seconds,
        }
        self._tiers: dict[CacheTier, TTLCache[CacheKey, Any]] = {
            tier: TTLCache(ttl, max_entries=self._settings.max_entries, clock=clock)
            for tier, ttl in ttls.items()
        }

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def tier(self, tier: CacheTier) -> TTLCache[CacheKey, Any]:
        return self._tiers[tier]

    def get(self, tier: CacheTier, key: str, lang: str | None = None) -> Any | None:
        if not self.enabled:
            return None
        return self._tiers[tier].get(_cache_key(key, lang))

    def set(self, tier: CacheTier, key: str, value: Any, lang: str | None = None) -> None:
        if self.enabled:
            self._tiers[tier].set(_cache_key(key, lang), value)

    def get_or_load(
        self,
        tier: CacheTier,
        key: str,
        loader: Callable[[], T],
        lang: str | None = None,
    ) -> T:
        if not self.enabled:
            return loader()
        return self._tiers[tier].get_or_load(_cache_key(key, lang), loader)

    def invalidate(self, tier: CacheTier | None = None) -> int:
        """Drop every entry in ``tier`` (or in all tiers); return the number dropped."""

        targets = [tier] if tier is not None else list(CacheTier)
        dropped = sum(self._tiers[target].clear() for target in targets)
        _LOGGER.debug(
            "invalidated %d cache entries",
            dropped,
            extra={"tier": tier.value if tier is not None else "all"},
        )
        return dropped

    def clear(self) -> int:
        return self.invalidate(None)

    def stats(self) -> dict[str, dict[str, float | int]]:
        return {tier.value: self._tiers[tier].stats().as_dict() for tier in CacheTier}


def _cache_key(key: str, lang: str | None) -> CacheKey:
    return (key, lang or DEFAULT_LANG)


__all__ = ["CacheKey", "ContentCache"]
