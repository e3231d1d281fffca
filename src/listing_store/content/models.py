"""Typed records for site config, directory items, categories, and tags."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Literal

from listing_store.constants import DEFAULT_LANG, ITEM_TIMESTAMP_FORMAT


class ContentError(RuntimeError):
    """Raised when a content file exists but cannot be interpreted."""


_IDENTIFIABLE_FIELDS: Final[frozenset[str]] = frozenset({"id", "name", "icon_url", "count"})
_ITEM_FIELDS: Final[frozenset[str]] = frozenset(
    {"name", "slug", "description", "source_url", "category", "tags", "featured", "updated_at"}
)
_AUTH_PROVIDERS: Final[tuple[str, ...]] = (
    "credentials",
    "google",
    "github",
    "microsoft",
    "fb",
    "x",
)


@dataclass(slots=True)
class Identifiable:
    """A category or tag entry; ``count`` is filled in while items are populated."""

    id: str
    name: str
    icon_url: str | None = None
    count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ref(cls, ref: object) -> Identifiable:
        """Normalise a bare id (string or number) or a mapping into an entry."""

        if isinstance(ref, Identifiable):
            return cls(
                id=ref.id,
                name=ref.name,
                icon_url=ref.icon_url,
                extra=copy.deepcopy(ref.extra),
            )
        if isinstance(ref, str):
            return cls(id=ref, name=ref)
        if isinstance(ref, (int, float)) and not isinstance(ref, bool):
            return cls(id=str(ref), name=str(ref))
        if isinstance(ref, Mapping):
            raw_id = ref.get("id")
            if raw_id is None:
                raise ContentError(f"collection entry has no id: {dict(ref)!r}")
            entry_id = str(raw_id)
            raw_name = ref.get("name")
            icon = ref.get("icon_url")
            raw_count = ref.get("count")
            return cls(
                id=entry_id,
                name=str(raw_name) if raw_name is not None else entry_id,
                icon_url=str(icon) if icon is not None else None,
                count=raw_count if isinstance(raw_count, int) and not isinstance(raw_count, bool) else None,
                extra={
                    str(k): copy.deepcopy(v)
                    for k, v in ref.items()
                    if str(k) not in _IDENTIFIABLE_FIELDS
                },
            )
        raise ContentError(f"unsupported collection reference: {ref!r}")

    def merged(self, overlay: Mapping[str, object]) -> Identifiable:
        """Return a copy with translated fields from ``overlay`` applied (id is kept)."""

        payload = self.to_dict()
        payload.update({str(k): v for k, v in overlay.items() if k != "id"})
        payload["id"] = self.id
        return type(self).from_ref(payload)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.icon_url is not None:
            payload["icon_url"] = self.icon_url
        if self.count is not None:
            payload["count"] = self.count
        payload.update(copy.deepcopy(self.extra))
        return payload


class Category(Identifiable):
    __slots__ = ()


class Tag(Identifiable):
    __slots__ = ()


@dataclass(slots=True)
class ItemData:
    """One directory listing parsed from ``data/<slug>/<slug>.yml``."""

    name: str
    slug: str
    description: str = ""
    source_url: str = ""
    category: Any = None
    tags: list[Any] = field(default_factory=list)
    featured: bool = False
    updated_at: str = ""
    updated_at_dt: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object], *, slug: str) -> ItemData:
        raw_updated = payload.get("updated_at")
        updated_at = _timestamp_text(raw_updated)
        raw_tags = payload.get("tags")
        return cls(
            name=str(payload.get("name") or slug),
            slug=slug,
            description=str(payload.get("description") or ""),
            source_url=str(payload.get("source_url") or ""),
            category=copy.deepcopy(payload.get("category")),
            tags=list(copy.deepcopy(raw_tags)) if isinstance(raw_tags, list) else [],
            featured=payload.get("featured") is True,
            updated_at=updated_at,
            updated_at_dt=parse_item_timestamp(raw_updated),
            extra={
                str(k): copy.deepcopy(v) for k, v in payload.items() if str(k) not in _ITEM_FIELDS
            },
        )

    def apply_translation(self, overlay: Mapping[str, object]) -> None:
        """Overlay translated fields in place; ``slug`` never changes."""

        for key, value in overlay.items():
            name = str(key)
            if name == "slug":
                continue
            if name in {"name", "description", "source_url"}:
                setattr(self, name, "" if value is None else str(value))
            elif name == "category":
                self.category = copy.deepcopy(value)
            elif name == "tags":
                self.tags = list(copy.deepcopy(value)) if isinstance(value, list) else []
            elif name == "featured":
                self.featured = value is True
            elif name == "updated_at":
                self.updated_at = _timestamp_text(value)
                self.updated_at_dt = parse_item_timestamp(value)
            else:
                self.extra[name] = copy.deepcopy(value)

    @property
    def categories(self) -> list[Identifiable]:
        raw = self.category
        if isinstance(raw, list):
            return [entry for entry in raw if isinstance(entry, Identifiable)]
        if isinstance(raw, Identifiable):
            return [raw]
        return []

    def category_ids(self) -> tuple[str, ...]:
        return _ref_ids(self.category)

    def tag_ids(self) -> tuple[str, ...]:
        return _ref_ids(self.tags)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "source_url": self.source_url,
            "category": _ref_to_json(self.category),
            "tags": [_ref_to_json(tag) for tag in self.tags],
            "featured": self.featured,
            "updated_at": self.updated_at,
        }
        payload.update(copy.deepcopy(self.extra))
        return payload


@dataclass(frozen=True, slots=True)
class AuthOptions:
    credentials: bool = False
    google: bool = False
    github: bool = False
    microsoft: bool = False
    fb: bool = False
    x: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> AuthOptions:
        return cls(**{name: payload.get(name) is True for name in _AUTH_PROVIDERS})

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in _AUTH_PROVIDERS}


@dataclass(frozen=True, slots=True)
class MailSettings:
    provider: Literal["novu", "resend"]
    default_from: str
    template_id: str | None = None
    backend_url: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> MailSettings:
        provider = payload.get("provider")
        if provider not in ("novu", "resend"):
            raise ContentError(f"unsupported mail provider: {provider!r}")
        default_from = payload.get("default_from")
        if not isinstance(default_from, str) or not default_from.strip():
            raise ContentError("mail.default_from must be a non-empty string")
        if provider == "resend":
            return cls(provider="resend", default_from=default_from)
        template_id = payload.get("template_id")
        backend_url = payload.get("backend_url")
        return cls(
            provider="novu",
            default_from=default_from,
            template_id=str(template_id) if template_id is not None else None,
            backend_url=str(backend_url) if backend_url is not None else None,
        )

    def to_dict(self) -> dict[str, str]:
        payload = {"provider": self.provider, "default_from": self.default_from}
        if self.template_id is not None:
            payload["template_id"] = self.template_id
        if self.backend_url is not None:
            payload["backend_url"] = self.backend_url
        return payload


@dataclass(frozen=True, slots=True)
class SiteConfig:
    """Site metadata read from ``config.yml``."""

    company_name: str | None = None
    copyright_year: int | None = None
    content_table: bool | None = None
    item_name: str | None = None
    items_name: str | None = None
    app_url: str | None = None
    auth: AuthOptions | Literal[False] | None = None
    mail: MailSettings | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SiteConfig:
        raw_auth = payload.get("auth")
        auth: AuthOptions | Literal[False] | None
        if raw_auth is False:
            auth = False
        elif isinstance(raw_auth, Mapping):
            auth = AuthOptions.from_mapping(raw_auth)
        elif raw_auth is None:
            auth = None
        else:
            raise ContentError("auth must be false or a mapping of provider flags")

        raw_mail = payload.get("mail")
        if raw_mail is not None and not isinstance(raw_mail, Mapping):
            raise ContentError("mail must be a mapping")

        raw_year = payload.get("copyright_year")
        copyright_year = raw_year if isinstance(raw_year, int) and not isinstance(raw_year, bool) else None
        raw_table = payload.get("content_table")

        known = {
            "company_name",
            "copyright_year",
            "content_table",
            "item_name",
            "items_name",
            "app_url",
            "auth",
            "mail",
        }
        return cls(
            company_name=_optional_text(payload.get("company_name")),
            copyright_year=copyright_year,
            content_table=raw_table if isinstance(raw_table, bool) else None,
            item_name=_optional_text(payload.get("item_name")),
            items_name=_optional_text(payload.get("items_name")),
            app_url=_optional_text(payload.get("app_url")),
            auth=auth,
            mail=MailSettings.from_mapping(raw_mail) if raw_mail is not None else None,
            extra={str(k): copy.deepcopy(v) for k, v in payload.items() if str(k) not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(copy.deepcopy(dict(self.extra)))
        for name in ("company_name", "copyright_year", "content_table", "item_name", "items_name", "app_url"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.auth is False:
            payload["auth"] = False
        elif self.auth is not None:
            payload["auth"] = self.auth.to_dict()
        if self.mail is not None:
            payload["mail"] = self.mail.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class FetchOptions:
    lang: str | None = None

    @property
    def translation_lang(self) -> str | None:
        """Language whose overlay files apply, or ``None`` for the base language."""

        if not self.lang or self.lang == DEFAULT_LANG:
            return None
        return self.lang

    @property
    def cache_key(self) -> str:
        return self.translation_lang or DEFAULT_LANG


@dataclass(slots=True)
class ItemsResult:
    total: int
    items: list[ItemData]
    categories: list[Identifiable]
    tags: list[Identifiable]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "items": [item.to_dict() for item in self.items],
            "categories": [entry.to_dict() for entry in self.categories],
            "tags": [entry.to_dict() for entry in self.tags],
        }


@dataclass(slots=True)
class ItemDetail:
    meta: ItemData
    content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"meta": self.meta.to_dict()}
        if self.content is not None:
            payload["content"] = self.content
        return payload


def parse_item_timestamp(raw: object) -> datetime | None:
    """Parse ``YYYY-MM-DD HH:MM``; YAML may already hand back a datetime."""

    if isinstance(raw, datetime):
        return raw.replace(tzinfo=None)
    if not isinstance(raw, str):
        return None
    try:
        return datetime.strptime(raw.strip(), ITEM_TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _timestamp_text(raw: object) -> str:
    if isinstance(raw, datetime):
        return raw.strftime(ITEM_TIMESTAMP_FORMAT)
    if raw is None:
        return ""
    return str(raw)


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _ref_ids(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    refs = value if isinstance(value, list) else [value]
    ids: list[str] = []
    for ref in refs:
        if isinstance(ref, Identifiable):
            ids.append(ref.id)
        elif isinstance(ref, str):
            ids.append(ref)
        elif isinstance(ref, (int, float)) and not isinstance(ref, bool):
            ids.append(str(ref))
        elif isinstance(ref, Mapping) and ref.get("id") is not None:
            ids.append(str(ref["id"]))
    return tuple(ids)


def _ref_to_json(value: object) -> Any:
    if isinstance(value, Identifiable):
        return value.to_dict()
    if isinstance(value, list):
        return [_ref_to_json(entry) for entry in value]
    return copy.deepcopy(value)


__all__ = [
    "AuthOptions",
    "Category",
    "ContentError",
    "FetchOptions",
    "Identifiable",
    "ItemData",
    "ItemDetail",
    "ItemsResult",
    "MailSettings",
    "SiteConfig",
    "Tag",
    "parse_item_timestamp",
]
