"""Tiered TTL caches and their invalidation."""

from listing_store.cache.invalidation import (
    CacheInvalidator,
    ContentFingerprint,
    fingerprint_content,
)
from listing_store.cache.store import ContentCache
from listing_store.cache.ttl import DEFAULT_TIER_TTLS, CacheStats, CacheTier, TTLCache

__all__ = [
    "CacheInvalidator",
    "CacheStats",
    "CacheTier",
    "ContentCache",
    "ContentFingerprint",
    "DEFAULT_TIER_TTLS",
    "TTLCache",
    "fingerprint_content",
]
