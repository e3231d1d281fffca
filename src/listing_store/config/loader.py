"""
listing-store — runtime config loader.

Purpose
- Build the effective ``listing.toml`` config for one CLI run or embedding application.

Layering (later layers win)
- Built-in defaults, then the TOML file, then the selected profile overlay,
  then ``LISTING_<SECTION>_<KEY>`` environment variables, then CLI overrides.

Functional requirements
- Environment values are coerced to the type of the built-in default for that key.
- ``DATA_REPOSITORY`` stands in for ``LISTING_CONTENT_DATA_REPOSITORY`` when the latter is unset.
- Content, backup and log paths are resolved against the config file's directory.
- Every layer is re-validated, so a bad override is reported against its config path.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from listing_store.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "listing.toml"
ENV_PREFIX: Final[str] = "LISTING_"
PROFILE_ENV: Final[str] = f"{ENV_PREFIX}PROFILE"
REPOSITORY_ALIAS_ENV: Final[str] = "DATA_REPOSITORY"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})
_NOT_OVERRIDABLE: Final[frozenset[str]] = frozenset({"meta", "profiles"})


class ConfigLoadError(ValueError):
    """Raised when the config file cannot be read or an override cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    Without ``config_path`` a ``listing.toml`` in the working directory is used when
    present; an explicit path must exist.
    """

    env = os.environ if environ is None else environ
    config_file = _config_file(config_path)
    profile_name = _profile_name(profile, env)

    config = assert_valid_config(merge_config(default_config(), _read_toml(config_file, config_path is not None)))
    if profile_name is not None:
        config = apply_profile_overlay(config, profile_name)
    config = merge_config(config, env_overrides(env))
    config = merge_config(config, _dotted_to_nested(cli_overrides or {}))
    config = assert_valid_config(config, active_profile=profile_name)
    return assert_valid_config(
        resolve_paths(config, base_dir=config_file.parent), active_profile=profile_name
    )


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``LISTING_<SECTION>_<KEY>`` values as a nested config overlay."""

    overlay: dict[str, Any] = {}
    for section, key, default in _overridable_settings():
        name = env_name(section, key)
        raw = environ.get(name)
        if raw is None and (section, key) == ("content", "data_repository"):
            raw = environ.get(REPOSITORY_ALIAS_ENV)
            name = REPOSITORY_ALIAS_ENV
        if raw is None:
            continue
        overlay.setdefault(section, {})[key] = _coerce(raw.strip(), default, name)
    return overlay


def env_name(section: str, key: str) -> str:
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


def resolve_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Make the configured content, backup and log paths absolute under ``base_dir``."""

    resolved = merge_config({}, config)
    for section, key in PATH_FIELDS:
        table = resolved.get(section)
        if not isinstance(table, dict):
            continue
        raw = table.get(key)
        if isinstance(raw, str) and raw:
            table[key] = _absolute_path(raw, base_dir)
    return resolved


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """The config with secrets and secret references masked, for display."""

    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _config_file(config_path: str | Path | None) -> Path:
    if config_path is None:
        return Path.cwd().resolve() / DEFAULT_CONFIG_FILE
    return Path(config_path).expanduser().resolve()


def _read_toml(path: Path, required: bool) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        if required:
            raise ConfigLoadError(f"config file not found: {path}") from exc
        return {}
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _profile_name(profile: str | None, environ: Mapping[str, str]) -> str | None:
    raw = profile if profile is not None else environ.get(PROFILE_ENV)
    if raw is None:
        return None
    return raw.strip() or None


def _overridable_settings() -> Iterator[tuple[str, str, object]]:
    for section, table in DEFAULT_CONFIG.items():
        if section in _NOT_OVERRIDABLE or not isinstance(table, Mapping):
            continue
        for key, default in table.items():
            yield section, key, default


def _coerce(raw: str, default: object, name: str) -> object:
    # The built-in default fixes the type; bool is checked before int.
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ConfigLoadError(f"{name} must be a boolean (true/false, yes/no, on/off, 1/0)")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be an integer, got {raw!r}") from exc
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be a number, got {raw!r}") from exc
    return raw


def _dotted_to_nested(overrides: Mapping[str, object]) -> dict[str, Any]:
    """Turn ``{"sync.enabled": False}`` into ``{"sync": {"enabled": False}}``; ``None`` means unset."""

    nested: dict[str, Any] = {}
    for dotted, value in overrides.items():
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        if not section or not key or "." in key:
            raise ConfigLoadError(f"override key must look like 'section.key', got {dotted!r}")
        nested.setdefault(section, {})[key] = value
    return nested


def _absolute_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PROFILE_ENV",
    "REPOSITORY_ALIAS_ENV",
    "dump_effective_config",
    "effective_config",
    "env_name",
    "env_overrides",
    "load_config",
    "resolve_paths",
]
