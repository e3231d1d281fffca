"""Cached content façade used by the CLI and embedding applications."""

from __future__ import annotations

import copy
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from listing_store.cache.invalidation import CacheInvalidator
from listing_store.cache.store import ContentCache
from listing_store.cache.ttl import CacheTier
from listing_store.config.settings import StoreSettings
from listing_store.constants import DEFAULT_SIMILAR_LIMIT
from listing_store.content import reader
from listing_store.content.file_service import YamlFileService
from listing_store.content.models import (
    FetchOptions,
    Identifiable,
    ItemData,
    ItemDetail,
    ItemsResult,
    SiteConfig,
)
from listing_store.content.similarity import rank_similar
from listing_store.observability import correlation_scope, get_logger
from listing_store.sync.repository import RepositorySynchronizer

_LOGGER = get_logger("content")

T = TypeVar("T")


class ContentService:
    """Serve content from the tier caches, refreshing the checkout as needed."""

    def __init__(
        self,
        settings: StoreSettings,
        *,
        cache: ContentCache | None = None,
        invalidator: CacheInvalidator | None = None,
        synchronizer: RepositorySynchronizer | None = None,
    ) -> None:
        self._settings = settings
        self._cache = cache or ContentCache(settings.cache)
        self._invalidator = invalidator or CacheInvalidator(
            self._cache, self.root, check_mtime=settings.cache.check_mtime
        )
        self._synchronizer = synchronizer
        self._synced_head: str | None = None

    @property
    def root(self) -> Path:
        return self._settings.content.content_path

    @property
    def cache(self) -> ContentCache:
        return self._cache

    @property
    def invalidator(self) -> CacheInvalidator:
        return self._invalidator

    def get_config(self) -> SiteConfig:
        self._refresh()
        return self._cached(CacheTier.CONFIG, "config", None, lambda: reader.read_site_config(self.root))

    def fetch_items(self, lang: str | None = None) -> ItemsResult:
        self._refresh()
        return copy.deepcopy(self._items(lang))

    def fetch_item(self, slug: str, lang: str | None = None) -> ItemDetail | None:
        self._refresh()
        options = self._options(lang)
        with correlation_scope(slug=slug, lang=options.cache_key):
            return self._cached(
                CacheTier.ITEMS,
                f"item:{slug}",
                lang,
                lambda: reader.fetch_item(self.root, slug, options),
            )

    def fetch_by_category(self, category_id: str, lang: str | None = None) -> ItemsResult:
        self._refresh()
        return copy.deepcopy(reader.filter_by_category(self._items(lang), category_id))

    def fetch_by_tag(self, tag_id: str, lang: str | None = None) -> ItemsResult:
        self._refresh()
        return copy.deepcopy(reader.filter_by_tag(self._items(lang), tag_id))

    def get_categories(self, lang: str | None = None) -> list[Identifiable]:
        self._refresh()
        return self._cached(CacheTier.COLLECTIONS, "categories", lang, lambda: self._items(lang).categories)

    def get_tags(self, lang: str | None = None) -> list[Identifiable]:
        self._refresh()
        return self._cached(CacheTier.COLLECTIONS, "tags", lang, lambda: self._items(lang).tags)

    def similar_items(
        self,
        slug: str,
        lang: str | None = None,
        limit: int = DEFAULT_SIMILAR_LIMIT,
    ) -> list[tuple[ItemData, float]] | None:
        """Items ranked by shared categories and tags, or ``None`` for an unknown slug."""

        self._refresh()

        def load() -> list[tuple[ItemData, float]] | None:
            items = self._items(lang).items
            target = next((item for item in items if item.slug == slug), None)
            if target is None:
                return None
            return rank_similar(target, items, limit)

        return self._cached(CacheTier.SIMILARITY, f"similar:{slug}:{limit}", lang, load)

    def file_service(self, name: str) -> YamlFileService:
        """Editor for a YAML list such as ``categories`` or ``tags`` in the content tree."""

        files = self._settings.files
        return YamlFileService(
            name,
            self.root,
            create_backups=files.create_backups,
            backup_dir=files.backup_dir,
            yaml_indent=files.yaml_indent,
        )

    def _items(self, lang: str | None) -> ItemsResult:
        options = self._options(lang)
        return self._cache.get_or_load(
            CacheTier.ITEMS,
            "items",
            lambda: reader.fetch_items(self.root, options),
            options.cache_key,
        )

    def _cached(self, tier: CacheTier, key: str, lang: str | None, loader: Callable[[], T]) -> T:
        value = self._cache.get_or_load(tier, key, loader, self._options(lang).cache_key)
        return copy.deepcopy(value)

    def _options(self, lang: str | None) -> FetchOptions:
        return FetchOptions(lang=lang or None)

    def _refresh(self) -> None:
        if self._synchronizer is not None and self._settings.sync.enabled:
            outcome = self._synchronizer.sync()
            previous_head, self._synced_head = self._synced_head, outcome.head or self._synced_head
            # A pull that fetched nothing keeps the tiers; the mtime check still runs.
            if outcome.action == "recloned" or (
                outcome.action in {"pulled", "cloned"} and outcome.head != previous_head
            ):
                self._invalidator.invalidate_content_caches()
                return
            if outcome.action == "fallback":
                _LOGGER.warning("serving local content: %s", outcome.message)
        self._invalidator.check()


__all__ = ["ContentService"]
