"""
listing-store — configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Profile overlay validation and deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Git tokens are never embedded in config; they are referenced through ``*_env`` keys.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from listing_store.constants import (
    COLLECTIONS_TTL_SECONDS,
    CONFIG_SCHEMA_VERSION,
    CONFIG_TTL_SECONDS,
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CONTENT_DIR,
    DEFAULT_LANG,
    GIT_OPERATION_TIMEOUT_SECONDS,
    GIT_PUSH_TIMEOUT_SECONDS,
    ITEMS_TTL_SECONDS,
    SIMILARITY_TTL_SECONDS,
    SYNC_INTERVAL_SECONDS,
    SYNC_MAX_RETRIES,
    SYNC_RETRY_DELAY_SECONDS,
    SYNC_THROTTLE_SECONDS,
    SYNC_TIMEOUT_SECONDS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("development", "production")

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_LANG_PATTERN = re.compile(r"^[a-z]{2,3}(?:[-_][A-Za-z0-9]{2,8})?$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "gh_token",
    "github_token",
    "private_key",
    "password",
    "secret",
)

_SECTIONS: Final[tuple[str, ...]] = (
    "content",
    "sync",
    "cache",
    "files",
    "observability",
)

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("content", "content_path"),
    ("files", "backup_dir"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class ContentConfig(TypedDict):
    data_repository: str
    branch: str
    token_env: str
    content_path: str
    default_lang: str


class SyncConfig(TypedDict):
    enabled: bool
    throttle_seconds: float
    interval_seconds: float
    timeout_seconds: float
    retry_delay_seconds: float
    max_retries: int
    git_timeout_seconds: float
    push_timeout_seconds: float
    author_name: str
    author_email: str


class CacheConfig(TypedDict):
    enabled: bool
    check_mtime: bool
    max_entries: int
    config_ttl_seconds: float
    items_ttl_seconds: float
    collections_ttl_seconds: float
    similarity_ttl_seconds: float


class FilesConfig(TypedDict):
    create_backups: bool
    backup_dir: str
    yaml_indent: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    content: dict[str, object]
    sync: dict[str, object]
    cache: dict[str, object]
    files: dict[str, object]
    observability: dict[str, object]


class ListingConfig(TypedDict):
    meta: MetaConfig
    content: ContentConfig
    sync: SyncConfig
    cache: CacheConfig
    files: FilesConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[ListingConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "content": {
        "data_repository": "",
        "branch": "",
        "token_env": "GH_TOKEN",
        "content_path": str(DEFAULT_CONTENT_DIR),
        "default_lang": DEFAULT_LANG,
    },
    "sync": {
        "enabled": True,
        "throttle_seconds": SYNC_THROTTLE_SECONDS,
        "interval_seconds": SYNC_INTERVAL_SECONDS,
        "timeout_seconds": SYNC_TIMEOUT_SECONDS,
        "retry_delay_seconds": SYNC_RETRY_DELAY_SECONDS,
        "max_retries": SYNC_MAX_RETRIES,
        "git_timeout_seconds": GIT_OPERATION_TIMEOUT_SECONDS,
        "push_timeout_seconds": GIT_PUSH_TIMEOUT_SECONDS,
        "author_name": DEFAULT_AUTHOR_NAME,
        "author_email": DEFAULT_AUTHOR_EMAIL,
    },
    "cache": {
        "enabled": True,
        "check_mtime": True,
        "max_entries": DEFAULT_CACHE_MAX_ENTRIES,
        "config_ttl_seconds": CONFIG_TTL_SECONDS,
        "items_ttl_seconds": ITEMS_TTL_SECONDS,
        "collections_ttl_seconds": COLLECTIONS_TTL_SECONDS,
        "similarity_ttl_seconds": SIMILARITY_TTL_SECONDS,
    },
    "files": {
        "create_backups": True,
        "backup_dir": "",
        "yaml_indent": 2,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs/",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
    "profiles": {
        "development": {
            "sync": {"enabled": False},
            "observability": {"log_level": "DEBUG"},
        },
        "production": {
            "cache": {"check_mtime": False},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ListingConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade listing.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the listing-store runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; tables merge, other values replace."""

    merged: dict[str, Any] = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, value in overlay.items():
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = merge_config({}, config)
    if profile is None:
        return materialized

    selected = profile.strip()
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )

    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )

    merged = merge_config(materialized, overlay_raw)
    return assert_valid_config(merged, active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, "", issues)

    selected_profile = active_profile.strip() if isinstance(active_profile, str) else None
    if selected_profile:
        profiles = normalized.get("profiles")
        if not isinstance(profiles, Mapping):
            issues.add("profiles", "profiles section is required")
        elif selected_profile not in profiles:
            issues.add("profiles", f"profile {selected_profile!r} is not defined")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())

    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Copy of ``config`` with secret values and ``*_env`` references masked, for display."""

    if not isinstance(config, Mapping):
        return {}
    return {
        key: "<redacted>"
        if _key_is_sensitive_for_redaction(key)
        else redact_config(value) if isinstance(value, Mapping) else value
        for key, value in sorted(config.items())
    }


_SectionValidator = Callable[
    [Mapping[str, object], str, "_IssueCollector"],
    dict[str, Any],
]


def _validate_root(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"meta", "profiles", *_SECTIONS}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, {"meta", *_SECTIONS}, path, issues)

    out: dict[str, Any] = {}

    meta_raw = payload.get("meta")
    if meta_raw is not None:
        meta_obj = _as_object(meta_raw, _join(path, "meta"), issues)
        if meta_obj is not None:
            out["meta"] = _validate_meta(meta_obj, _join(path, "meta"), issues)

    for section in _SECTIONS:
        raw = payload.get(section)
        if raw is None:
            continue
        section_path = _join(path, section)
        section_obj = _as_object(raw, section_path, issues)
        if section_obj is None:
            continue
        out[section] = _section_validator(section, partial=False)(section_obj, section_path, issues)

    profiles_raw = payload.get("profiles")
    if profiles_raw is not None:
        profiles_path = _join(path, "profiles")
        profiles_obj = _as_object(profiles_raw, profiles_path, issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, profiles_path, issues)

    _validate_sync_cross_fields(out.get("sync"), _join(path, "sync"), issues)
    return out


def _section_validator(section: str, *, partial: bool) -> _SectionValidator:
    validators: dict[str, Callable[..., dict[str, Any]]] = {
        "content": _validate_content,
        "sync": _validate_sync,
        "cache": _validate_cache,
        "files": _validate_files,
        "observability": _validate_observability,
    }
    selected = validators[section]

    def run(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> dict[str, Any]:
        return selected(payload, path, issues, partial=partial)

    return run


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_content(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    fields = {"data_repository", "branch", "token_env", "content_path", "default_lang"}
    _reject_unknown_keys(payload, fields, path, issues)
    if not partial:
        _require_keys(payload, fields, path, issues)

    out: dict[str, Any] = {}
    for key in ("data_repository", "branch"):
        if key in payload:
            parsed_optional = _as_optional_str(payload[key], _join(path, key), issues)
            if parsed_optional is not None:
                out[key] = parsed_optional

    repository = out.get("data_repository")
    if isinstance(repository, str) and repository and _has_embedded_credentials(repository):
        issues.add(
            _join(path, "data_repository"),
            "embedded credentials are forbidden; provide the token through token_env",
        )

    if "token_env" in payload:
        parsed_env = _as_env_name(payload["token_env"], _join(path, "token_env"), issues)
        if parsed_env is not None:
            out["token_env"] = parsed_env

    if "content_path" in payload:
        parsed_path = _as_path_text(payload["content_path"], _join(path, "content_path"), issues)
        if parsed_path is not None:
            out["content_path"] = parsed_path

    if "default_lang" in payload:
        parsed_lang = _as_str(payload["default_lang"], _join(path, "default_lang"), issues)
        if parsed_lang is not None:
            if _LANG_PATTERN.fullmatch(parsed_lang):
                out["default_lang"] = parsed_lang
            else:
                issues.add(_join(path, "default_lang"), "must be a language code (example: en)")
    return out


def _validate_sync(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    float_fields = (
        "throttle_seconds",
        "interval_seconds",
        "timeout_seconds",
        "retry_delay_seconds",
        "git_timeout_seconds",
        "push_timeout_seconds",
    )
    fields = {"enabled", "max_retries", "author_name", "author_email", *float_fields}
    _reject_unknown_keys(payload, fields, path, issues)
    if not partial:
        _require_keys(payload, fields, path, issues)

    out: dict[str, Any] = {}
    if "enabled" in payload:
        parsed_bool = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if parsed_bool is not None:
            out["enabled"] = parsed_bool

    for key in float_fields:
        if key not in payload:
            continue
        minimum = 0.0 if key in {"throttle_seconds", "retry_delay_seconds"} else 0.001
        parsed_float = _as_float(payload[key], _join(path, key), issues, minimum=minimum)
        if parsed_float is not None:
            out[key] = parsed_float

    if "max_retries" in payload:
        parsed_int = _as_int(payload["max_retries"], _join(path, "max_retries"), issues, minimum=0)
        if parsed_int is not None:
            out["max_retries"] = parsed_int

    for key in ("author_name", "author_email"):
        if key in payload:
            parsed_text = _as_str(payload[key], _join(path, key), issues)
            if parsed_text is not None:
                out[key] = parsed_text
    return out


def _validate_cache(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    ttl_fields = (
        "config_ttl_seconds",
        "items_ttl_seconds",
        "collections_ttl_seconds",
        "similarity_ttl_seconds",
    )
    fields = {"enabled", "check_mtime", "max_entries", *ttl_fields}
    _reject_unknown_keys(payload, fields, path, issues)
    if not partial:
        _require_keys(payload, fields, path, issues)

    out: dict[str, Any] = {}
    for key in ("enabled", "check_mtime"):
        if key in payload:
            parsed_bool = _as_bool(payload[key], _join(path, key), issues)
            if parsed_bool is not None:
                out[key] = parsed_bool

    if "max_entries" in payload:
        parsed_int = _as_int(payload["max_entries"], _join(path, "max_entries"), issues, minimum=1)
        if parsed_int is not None:
            out["max_entries"] = parsed_int

    for key in ttl_fields:
        if key in payload:
            parsed_float = _as_float(payload[key], _join(path, key), issues, minimum=0.0)
            if parsed_float is not None:
                out[key] = parsed_float
    return out


def _validate_files(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    fields = {"create_backups", "backup_dir", "yaml_indent"}
    _reject_unknown_keys(payload, fields, path, issues)
    if not partial:
        _require_keys(payload, fields, path, issues)

    out: dict[str, Any] = {}
    if "create_backups" in payload:
        parsed_bool = _as_bool(payload["create_backups"], _join(path, "create_backups"), issues)
        if parsed_bool is not None:
            out["create_backups"] = parsed_bool
    if "backup_dir" in payload:
        parsed_dir = _as_optional_str(payload["backup_dir"], _join(path, "backup_dir"), issues)
        if parsed_dir is not None:
            out["backup_dir"] = parsed_dir
    if "yaml_indent" in payload:
        parsed_indent = _as_int(payload["yaml_indent"], _join(path, "yaml_indent"), issues, minimum=2)
        if parsed_indent is not None:
            if parsed_indent > 9:
                issues.add(_join(path, "yaml_indent"), "must be <= 9")
            else:
                out["yaml_indent"] = parsed_indent
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    fields = {"log_level", "log_dir", "log_to_stdout", "redact_secrets"}
    _reject_unknown_keys(payload, fields, path, issues)
    if not partial:
        _require_keys(payload, fields, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        parsed_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_level is not None:
            out["log_level"] = parsed_level
    if "log_dir" in payload:
        parsed_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_dir is not None:
            out["log_dir"] = parsed_dir
    for key in ("log_to_stdout", "redact_secrets"):
        if key in payload:
            parsed_bool = _as_bool(payload[key], _join(path, key), issues)
            if parsed_bool is not None:
                out[key] = parsed_bool
    return out


def _validate_profiles(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        profile_path = _join(path, name)
        if not _PROFILE_NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile names must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = _as_object(payload[name], profile_path, issues)
        if overlay is None:
            continue
        out[name] = _validate_profile_overlay(overlay, profile_path, issues)
    return out


def _validate_profile_overlay(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(_SECTIONS), path, issues)

    out: dict[str, Any] = {}
    for section in sorted(_SECTIONS):
        raw = payload.get(section)
        if raw is None:
            continue
        section_path = _join(path, section)
        section_obj = _as_object(raw, section_path, issues)
        if section_obj is None:
            continue
        out[section] = _section_validator(section, partial=True)(section_obj, section_path, issues)
    return out


def _validate_sync_cross_fields(sync: object, path: str, issues: _IssueCollector) -> None:
    if not isinstance(sync, Mapping):
        return
    interval = sync.get("interval_seconds")
    throttle = sync.get("throttle_seconds")
    if isinstance(interval, float) and isinstance(throttle, float) and throttle > interval:
        issues.add(
            _join(path, "throttle_seconds"),
            "must be <= interval_seconds so periodic syncs are not throttled away",
        )


def _has_embedded_credentials(url: str) -> bool:
    scheme, sep, rest = url.partition("://")
    if not sep or not scheme:
        return False
    authority = rest.split("/", 1)[0]
    return "@" in authority


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_optional_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    return value.strip()


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: GH_TOKEN)")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _key_is_sensitive_for_redaction(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return True
    return _looks_sensitive_key(normalized)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ListingConfig",
    "PATH_FIELDS",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
