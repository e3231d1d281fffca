"""
listing-store — content tree reader.

Purpose
- Read the YAML content tree (site config, items, categories, tags, translations, bodies).

Functional requirements
- Missing files degrade to empty results; malformed YAML raises ``ContentError``.
- Translation overlays apply only for non-default languages.
- Category and tag counts accumulate while items are populated.
- No caching happens here; see ``listing_store.content.service``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, MutableMapping
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import yaml

from listing_store.constants import (
    BODY_EXTENSIONS,
    COLLECTION_KINDS,
    DATA_DIR,
    SITE_CONFIG_FILENAME,
    YAML_EXTENSION,
)
from listing_store.content.models import (
    Category,
    ContentError,
    FetchOptions,
    Identifiable,
    ItemData,
    ItemDetail,
    ItemsResult,
    SiteConfig,
    Tag,
)
from listing_store.observability import get_logger

_LOGGER = get_logger("content")

Collection = MutableMapping[str, Identifiable]

_COLLECTION_TYPES: dict[str, type[Identifiable]] = {"categories": Category, "tags": Tag}

# Escapes of URI reserved characters and "#" stay encoded when ids are decoded.
_RESERVED_ESCAPE = re.compile(r"(%(?:23|24|26|2[BbCcFf]|3[AaBbDdFf]|40))")


def read_site_config(root: Path) -> SiteConfig:
    """Parse ``config.yml``; a missing file yields an empty config."""

    payload = _load_yaml(root / SITE_CONFIG_FILENAME)
    if payload is None:
        return SiteConfig()
    if not isinstance(payload, Mapping):
        raise ContentError(f"{root / SITE_CONFIG_FILENAME} must contain a mapping")
    return SiteConfig.from_mapping(payload)


def parse_item(base: Path, filename: str) -> ItemData:
    path = base / filename
    if not path.is_file():
        raise ContentError(f"item file not found: {path}")
    payload = _load_yaml(path)
    if not isinstance(payload, Mapping):
        raise ContentError(f"{path} must contain a mapping")
    slug = Path(filename).stem
    return ItemData.from_mapping(payload, slug=slug)


def parse_translation(base: Path, filename: str) -> Any | None:
    """Return the parsed overlay, or ``None`` when it is missing or unreadable."""

    try:
        return _load_yaml(base / filename)
    except ContentError as exc:
        _LOGGER.debug("ignoring unreadable translation %s: %s", base / filename, exc)
        return None


def read_collection(root: Path, kind: str, options: FetchOptions | None = None) -> dict[str, Identifiable]:
    """Read ``categories`` or ``tags`` keyed by id, in file order."""

    if kind not in COLLECTION_KINDS:
        raise ValueError(f"unknown collection kind: {kind!r}")
    opts = options or FetchOptions()
    entry_type = _COLLECTION_TYPES[kind]

    collection_dir = root / kind
    use_dir = collection_dir.is_dir()
    collection_path = (
        collection_dir / f"{kind}{YAML_EXTENSION}" if use_dir else root / f"{kind}{YAML_EXTENSION}"
    )

    payload = _load_yaml(collection_path)
    if payload is None:
        return {}
    if not isinstance(payload, list):
        raise ContentError(f"{collection_path} must contain a list")

    collection: dict[str, Identifiable] = {}
    for raw in payload:
        entry = entry_type.from_ref(raw)
        collection[entry.id] = entry

    lang = opts.translation_lang
    if use_dir and lang is not None:
        overlay = parse_translation(collection_dir, f"{kind}.{lang}{YAML_EXTENSION}")
        if isinstance(overlay, list):
            for translation in overlay:
                if not isinstance(translation, Mapping) or translation.get("id") is None:
                    continue
                entry_id = str(translation["id"])
                existing = collection.get(entry_id)
                if existing is not None:
                    collection[entry_id] = existing.merged(translation)

    return collection


def populate(ref: object, collection: Collection, entry_type: type[Identifiable] = Identifiable) -> Identifiable:
    """Resolve ``ref`` against ``collection``, counting the reference."""

    normalized = entry_type.from_ref(ref)
    result = entry_type(id=normalized.id, name=normalized.name)

    known = collection.get(result.id)
    if known is not None:
        result.name = known.name
        known.count = (known.count or 0) + 1
    else:
        collection[result.id] = entry_type(id=result.id, name=result.name, count=1)
    return result


def fetch_items(root: Path, options: FetchOptions | None = None) -> ItemsResult:
    """Read every item under ``data/`` with populated categories and tags."""

    opts = options or FetchOptions()
    categories = read_collection(root, "categories", opts)
    tags = read_collection(root, "tags", opts)

    data_dir = root / DATA_DIR
    if not data_dir.is_dir():
        _LOGGER.debug("no data directory at %s", data_dir)
        return ItemsResult(total=0, items=[], categories=list(categories.values()), tags=list(tags.values()))

    try:
        entries = sorted(os.listdir(data_dir))
    except OSError as exc:
        raise ContentError(f"unable to list {data_dir}: {exc}") from exc

    items: list[ItemData] = []
    for slug in entries:
        base = data_dir / slug
        if not base.is_dir() or not is_valid_slug(slug):
            continue
        try:
            item = _load_item(base, slug, opts)
            _populate_item(item, categories, tags)
        except ContentError as exc:
            _LOGGER.warning("skipping item %s: %s", slug, exc)
            continue
        items.append(item)

    items.sort(key=_item_sort_key)
    return ItemsResult(
        total=len(items),
        items=items,
        categories=list(categories.values()),
        tags=list(tags.values()),
    )


def fetch_item(root: Path, slug: str, options: FetchOptions | None = None) -> ItemDetail | None:
    """Read one item with its markdown body; any failure yields ``None``."""

    if not is_valid_slug(slug):
        _LOGGER.debug("rejected item slug %r", slug)
        return None
    opts = options or FetchOptions()
    base = root / DATA_DIR / slug

    try:
        categories = read_collection(root, "categories", opts)
        tags = read_collection(root, "tags", opts)
        meta = _load_item(base, slug, opts)
        _populate_item(meta, categories, tags)

        body_path = _resolve_body_path(base, slug, opts.lang)
        if body_path is None:
            return ItemDetail(meta=meta)
        return ItemDetail(meta=meta, content=body_path.read_text(encoding="utf-8"))
    except (ContentError, OSError, UnicodeDecodeError) as exc:
        _LOGGER.info("item %s unavailable: %s", slug, exc, extra={"slug": slug})
        return None


def filter_by_category(result: ItemsResult, raw_id: str) -> ItemsResult:
    category_id = decode_uri(raw_id)
    return ItemsResult(
        total=result.total,
        items=[item for item in result.items if category_id in item.category_ids()],
        categories=result.categories,
        tags=result.tags,
    )


def filter_by_tag(result: ItemsResult, raw_id: str) -> ItemsResult:
    tag_id = decode_uri(raw_id)
    return ItemsResult(
        total=result.total,
        items=[item for item in result.items if tag_id in item.tag_ids()],
        categories=result.categories,
        tags=result.tags,
    )


def decode_uri(raw: str) -> str:
    """Percent-decode ``raw`` except escapes of reserved characters such as ``%2F``."""

    parts = _RESERVED_ESCAPE.split(raw)
    return "".join(part if index % 2 else unquote(part) for index, part in enumerate(parts))


def is_valid_slug(slug: str) -> bool:
    if not slug or slug in {".", ".."} or slug.startswith("."):
        return False
    return "/" not in slug and "\\" not in slug and "\x00" not in slug


def _load_item(base: Path, slug: str, options: FetchOptions) -> ItemData:
    item = parse_item(base, f"{slug}{YAML_EXTENSION}")
    lang = options.translation_lang
    if lang is not None:
        translation = parse_translation(base, f"{slug}.{lang}{YAML_EXTENSION}")
        if isinstance(translation, Mapping):
            item.apply_translation(translation)
    return item


def _populate_item(item: ItemData, categories: Collection, tags: Collection) -> None:
    # Normalise every ref before touching counts; a rejected item leaves them as they were.
    tag_refs = [Tag.from_ref(tag) for tag in item.tags]
    if isinstance(item.category, list):
        category_refs: list[Identifiable] | None = [Category.from_ref(entry) for entry in item.category]
    else:
        category_refs = None
    single_category = (
        Category.from_ref(item.category) if category_refs is None and item.category is not None else None
    )

    item.tags = [populate(tag, tags, Tag) for tag in tag_refs]
    if category_refs is not None:
        item.category = [populate(entry, categories, Category) for entry in category_refs]
    elif single_category is not None:
        item.category = populate(single_category, categories, Category)


def _item_sort_key(item: ItemData) -> tuple[int, int, float, str]:
    # Featured first, then newest first; unparsable timestamps go last.
    stamp = item.updated_at_dt
    has_stamp = 0 if stamp is not None else 1
    ordinal = -_timestamp_value(stamp) if stamp is not None else 0.0
    return (0 if item.featured else 1, has_stamp, ordinal, item.slug)


def _timestamp_value(stamp: datetime) -> float:
    return (stamp - datetime(1970, 1, 1)).total_seconds()


def _resolve_body_path(base: Path, slug: str, lang: str | None) -> Path | None:
    candidates: list[Path] = []
    if lang:
        candidates.extend(base / f"{slug}.{lang}{ext}" for ext in BODY_EXTENSIONS)
    candidates.extend(base / f"{slug}{ext}" for ext in BODY_EXTENSIONS)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _load_yaml(path: Path) -> Any | None:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise ContentError(f"unable to read {path}: {exc}") from exc
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ContentError(f"invalid YAML in {path}: {exc}") from exc


__all__ = [
    "decode_uri",
    "fetch_item",
    "fetch_items",
    "filter_by_category",
    "filter_by_tag",
    "is_valid_slug",
    "parse_item",
    "parse_translation",
    "populate",
    "read_collection",
    "read_site_config",
]
