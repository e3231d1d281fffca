"""Public observability primitives: structured logging and correlation scopes."""

from listing_store.observability.logging import (
    LOG_FILENAME,
    REDACTED,
    ROOT_LOGGER_NAME,
    JsonLinesFormatter,
    LogSession,
    correlation_scope,
    get_logger,
    redact_fields,
    redact_text,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "JsonLinesFormatter",
    "LOG_FILENAME",
    "LogSession",
    "REDACTED",
    "ROOT_LOGGER_NAME",
    "correlation_scope",
    "get_logger",
    "redact_fields",
    "redact_text",
    "setup_logging",
    "shutdown_logging",
]
