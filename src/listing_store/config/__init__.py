"""
listing-store config package public API.

Purpose
- Export config loading/validation entrypoints, typed settings, and public error types.

Functional requirements
- Support loading from ``listing.toml`` + ``LISTING_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from listing_store.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    env_overrides,
    load_config,
    resolve_paths,
)
from listing_store.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ListingConfig,
    ProfileOverlay,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    redact_config,
    validate_config,
)
from listing_store.config.settings import (
    CacheSettings,
    ContentSettings,
    FileSettings,
    StoreSettings,
    SyncSettings,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "CacheSettings",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ContentSettings",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "FileSettings",
    "ListingConfig",
    "PATH_FIELDS",
    "ProfileOverlay",
    "StoreSettings",
    "SyncSettings",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "env_overrides",
    "load_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "resolve_paths",
    "validate_config",
]
