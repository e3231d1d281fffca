"""Command-line interface router for listing-store."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from listing_store.cache import CacheInvalidator, ContentCache, fingerprint_content
from listing_store.config import (
    ConfigLoadError,
    ConfigValidationError,
    StoreSettings,
    effective_config,
    load_config,
)
from listing_store.constants import DEFAULT_SIMILAR_LIMIT
from listing_store.content import ContentService, Identifiable, ItemData, ItemsResult
from listing_store.observability import get_logger, redact_text, setup_logging, shutdown_logging
from listing_store.sync import RepositorySynchronizer, SyncManager, SyncResult
from listing_store.ui.render import CLIRenderer, create_renderer
from listing_store.utils.concurrency import CancellationToken

EXIT_NOT_FOUND: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2

_LOGGER = get_logger("cli")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _Runtime:
    config: dict[str, Any]
    settings: StoreSettings
    cache: ContentCache
    invalidator: CacheInvalidator
    synchronizer: RepositorySynchronizer
    service: ContentService

    def sync_manager(self) -> SyncManager:
        return SyncManager(self.synchronizer, self.invalidator, self.settings.sync)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="listing",
        description=(
            "listing-store — Git-backed YAML directory content with tiered caching.\n\n"
            "Common workflows:\n"
            "  listing sync                Pull the data repository once\n"
            "  listing watch               Keep the content tree in sync\n"
            "  listing items --lang fr     List items with French overlays\n"
            "  listing similar <slug>      Show related items\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to listing TOML config (default: ./listing.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument(
        "--content-path",
        default=None,
        help="Content tree directory (overrides content.content_path).",
    )
    common.add_argument(
        "--log-dir",
        default=None,
        help="Directory for structured logs (overrides observability.log_dir).",
    )
    common.add_argument("--lang", default=None, help="Language for translation overlays.")
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    common.add_argument(
        "--no-sync",
        action="store_true",
        default=False,
        help="Serve local content without contacting the data repository.",
    )
    common.add_argument("--verbose", "-v", action="store_true", default=False, help="Show detailed output.")
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", parents=[common], help="Run one repository sync")
    sync_parser.set_defaults(handler=_cmd_sync)

    watch_parser = subparsers.add_parser(
        "watch", parents=[common], help="Sync periodically until interrupted"
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between syncs (overrides sync.interval_seconds).",
    )
    watch_parser.set_defaults(handler=_cmd_watch)

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Show repository, sync, and cache status"
    )
    status_parser.set_defaults(handler=_cmd_status)

    items_parser = subparsers.add_parser("items", parents=[common], help="List all items")
    items_parser.set_defaults(handler=_cmd_items)

    item_parser = subparsers.add_parser("item", parents=[common], help="Show one item and its body")
    item_parser.add_argument("slug", help="Item slug (directory name under data/)")
    item_parser.set_defaults(handler=_cmd_item)

    category_parser = subparsers.add_parser(
        "category", parents=[common], help="List items in a category"
    )
    category_parser.add_argument("category_id", help="Category id (URL-encoded ids are accepted)")
    category_parser.set_defaults(handler=_cmd_category)

    tag_parser = subparsers.add_parser("tag", parents=[common], help="List items with a tag")
    tag_parser.add_argument("tag_id", help="Tag id (URL-encoded ids are accepted)")
    tag_parser.set_defaults(handler=_cmd_tag)

    similar_parser = subparsers.add_parser(
        "similar", parents=[common], help="Show items related by categories and tags"
    )
    similar_parser.add_argument("slug", help="Item slug")
    similar_parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_SIMILAR_LIMIT,
        help=f"Maximum number of related items (default: {DEFAULT_SIMILAR_LIMIT}).",
    )
    similar_parser.set_defaults(handler=_cmd_similar)

    categories_parser = subparsers.add_parser(
        "categories", parents=[common], help="List categories with item counts"
    )
    categories_parser.set_defaults(handler=_cmd_collection, collection="categories")

    tags_parser = subparsers.add_parser("tags", parents=[common], help="List tags with item counts")
    tags_parser.set_defaults(handler=_cmd_collection, collection="tags")

    config_parser = subparsers.add_parser(
        "config", parents=[common], help="Show the redacted effective configuration"
    )
    config_parser.set_defaults(handler=_cmd_config)

    site_parser = subparsers.add_parser("site", parents=[common], help="Show the site config.yml")
    site_parser.set_defaults(handler=_cmd_site)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_sync(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    manager = runtime.sync_manager()

    async def _run() -> SyncResult:
        result = await manager.trigger_manual_sync()
        await manager.cancel_pending_retry()
        return result

    result = asyncio.run(_run())
    if _flag(args, "json"):
        _emit_json({"command": "sync", "result": result.to_dict()})
    else:
        renderer = _get_renderer(args)
        _render_sync_result(renderer, result)
    return 0 if result.success else EXIT_NOT_FOUND


def _cmd_watch(args: argparse.Namespace) -> int:
    interval = getattr(args, "interval", None)
    overrides = {"sync.interval_seconds": interval} if interval is not None else {}
    runtime = _build_runtime(args, extra_overrides=overrides)
    manager = runtime.sync_manager()
    renderer = _get_renderer(args)
    token = CancellationToken()

    renderer.heading(f"Watching {runtime.settings.content.content_path}")
    renderer.kv("Interval", f"{runtime.settings.sync.interval_seconds:g}s")
    try:
        asyncio.run(manager.run_forever(token))
    except KeyboardInterrupt:
        token.cancel()
        renderer.text("Stopped.")
    last = manager.status().last_sync_result
    return 0 if last is None or last.success else EXIT_NOT_FOUND


def _cmd_status(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    settings = runtime.settings
    root = settings.content.content_path
    fingerprint = fingerprint_content(root)
    status = runtime.sync_manager().status()

    payload: dict[str, Any] = {
        "command": "status",
        "content_path": root.as_posix(),
        "content_exists": root.is_dir(),
        "repository": redact_text(settings.content.data_repository) or None,
        "branch": settings.content.branch or None,
        "head": fingerprint.head,
        "file_count": fingerprint.file_count,
        "sync": {
            "enabled": settings.sync.enabled,
            "interval_seconds": settings.sync.interval_seconds,
            "throttle_seconds": settings.sync.throttle_seconds,
            **status.to_dict(),
        },
        "cache": {
            "enabled": settings.cache.enabled,
            "check_mtime": settings.cache.check_mtime,
            "tiers": runtime.cache.stats(),
        },
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.heading("listing-store status")
    renderer.kv("Content path", payload["content_path"])
    renderer.kv("Content present", "yes" if payload["content_exists"] else "no")
    renderer.kv("Repository", payload["repository"] or "(none configured)")
    if payload["branch"]:
        renderer.kv("Branch", payload["branch"])
    renderer.kv("HEAD", payload["head"] or "(not a git checkout)")
    renderer.kv("Files", payload["file_count"])
    renderer.kv("Auto sync", "enabled" if settings.sync.enabled else "disabled")
    renderer.kv("Sync interval", f"{settings.sync.interval_seconds:g}s")
    rows = [
        [tier, f"{stats['ttl_seconds']:g}s", str(stats["size"])]
        for tier, stats in payload["cache"]["tiers"].items()
    ]
    renderer.table(["Tier", "TTL", "Entries"], rows, title="Cache tiers")
    return 0


def _cmd_items(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    result = runtime.service.fetch_items(_lang(args))
    return _render_items_result(args, "items", result)


def _cmd_item(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    slug = _require_str(getattr(args, "slug", None), "slug")
    detail = runtime.service.fetch_item(slug, _lang(args))
    if detail is None:
        raise CLIError(f"item not found: {slug}", exit_code=EXIT_NOT_FOUND)

    if _flag(args, "json"):
        _emit_json({"command": "item", **detail.to_dict()})
        return 0

    renderer = _get_renderer(args)
    meta = detail.meta
    renderer.heading(meta.name)
    renderer.kv("Slug", meta.slug)
    if meta.description:
        renderer.kv("Description", meta.description)
    if meta.source_url:
        renderer.kv("Source", meta.source_url)
    renderer.kv("Categories", ", ".join(meta.category_ids()) or "-")
    renderer.kv("Tags", ", ".join(meta.tag_ids()) or "-")
    renderer.kv("Featured", "yes" if meta.featured else "no")
    renderer.kv("Updated", meta.updated_at or "-")
    if detail.content is not None:
        renderer.blank()
        renderer.text(detail.content.rstrip("\n"))
    return 0


def _cmd_category(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    category_id = _require_str(getattr(args, "category_id", None), "category_id")
    result = runtime.service.fetch_by_category(category_id, _lang(args))
    return _render_items_result(args, "category", result)


def _cmd_tag(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    tag_id = _require_str(getattr(args, "tag_id", None), "tag_id")
    result = runtime.service.fetch_by_tag(tag_id, _lang(args))
    return _render_items_result(args, "tag", result)


def _cmd_similar(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    slug = _require_str(getattr(args, "slug", None), "slug")
    limit = getattr(args, "limit", DEFAULT_SIMILAR_LIMIT)
    if not isinstance(limit, int) or limit <= 0:
        raise CLIError("invalid limit: expected a positive integer", exit_code=EXIT_CONFIG_ERROR)

    ranked = runtime.service.similar_items(slug, _lang(args), limit)
    if ranked is None:
        raise CLIError(f"item not found: {slug}", exit_code=EXIT_NOT_FOUND)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "similar",
                "slug": slug,
                "items": [
                    {"slug": item.slug, "name": item.name, "score": round(score, 6)}
                    for item, score in ranked
                ],
            }
        )
        return 0

    renderer = _get_renderer(args)
    if not ranked:
        renderer.text(f"No related items for {slug}.")
        return 0
    renderer.table(
        ["Slug", "Name", "Score"],
        [[item.slug, item.name, f"{score:.3f}"] for item, score in ranked],
        title=f"Related to {slug}",
    )
    return 0


def _cmd_collection(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    kind = getattr(args, "collection", "categories")
    lang = _lang(args)
    entries = runtime.service.get_categories(lang) if kind == "categories" else runtime.service.get_tags(lang)

    if _flag(args, "json"):
        _emit_json({"command": kind, kind: [entry.to_dict() for entry in entries]})
        return 0

    renderer = _get_renderer(args)
    if not entries:
        renderer.text(f"No {kind} found.")
        return 0
    renderer.table(["Id", "Name", "Items"], [_collection_row(entry) for entry in entries], title=kind.title())
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))
    redacted = effective_config(config)

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": profile,
        "config": redacted,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_site(args: argparse.Namespace) -> int:
    runtime = _build_runtime(args)
    site = runtime.service.get_config().to_dict()

    if _flag(args, "json"):
        _emit_json({"command": "site", "site": site})
        return 0

    renderer = _get_renderer(args)
    if not site:
        renderer.text("No site config found.")
        return 0
    for key in sorted(site):
        value = site[key]
        if isinstance(value, (Mapping, list)):
            value = json.dumps(value, sort_keys=True, ensure_ascii=False)
        renderer.kv(key, value)
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_runtime(
    args: argparse.Namespace,
    *,
    extra_overrides: Mapping[str, object] | None = None,
) -> _Runtime:
    config = _load_effective_config(args, extra_overrides=extra_overrides)
    settings = StoreSettings.from_config(config)
    session_id = uuid.uuid4().hex[:12]
    setup_logging(config["observability"], session_id=session_id)
    _LOGGER.debug("command %s", getattr(args, "command", None))

    cache = ContentCache(settings.cache)
    invalidator = CacheInvalidator(cache, settings.content.content_path, check_mtime=settings.cache.check_mtime)
    synchronizer = RepositorySynchronizer(settings)
    service = ContentService(
        settings,
        cache=cache,
        invalidator=invalidator,
        synchronizer=None if _flag(args, "no_sync") else synchronizer,
    )
    return _Runtime(
        config=config,
        settings=settings,
        cache=cache,
        invalidator=invalidator,
        synchronizer=synchronizer,
        service=service,
    )


def _load_effective_config(
    args: argparse.Namespace,
    *,
    extra_overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    overrides: dict[str, object] = {
        "content.content_path": _absolute(getattr(args, "content_path", None)),
        "observability.log_dir": _absolute(getattr(args, "log_dir", None)),
    }
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"
    overrides.update(extra_overrides or {})

    try:
        loaded = load_config(config_path, profile=profile, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=EXIT_CONFIG_ERROR) from exc
    return loaded


def _render_items_result(args: argparse.Namespace, command: str, result: ItemsResult) -> int:
    if _flag(args, "json"):
        _emit_json({"command": command, **result.to_dict()})
        return 0

    renderer = _get_renderer(args)
    if not result.items:
        renderer.text(f"No items found ({result.total} total).")
        return 0
    renderer.table(
        ["Slug", "Name", "Categories", "Tags", "Featured", "Updated"],
        [_item_row(item) for item in result.items],
        title=f"{len(result.items)} of {result.total} items",
    )
    return 0


def _render_sync_result(renderer: CLIRenderer, result: SyncResult) -> None:
    if result.success:
        renderer.ok(result.message)
    else:
        renderer.fail(result.message)
    if result.details:
        renderer.kv("Details", result.details)
    if result.duration_ms is not None:
        renderer.kv("Duration", f"{result.duration_ms}ms")


def _item_row(item: ItemData) -> list[str]:
    return [
        item.slug,
        item.name,
        ", ".join(item.category_ids()),
        ", ".join(item.tag_ids()),
        "yes" if item.featured else "",
        item.updated_at,
    ]


def _collection_row(entry: Identifiable) -> list[str]:
    return [entry.id, entry.name, str(entry.count or 0)]


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _lang(args: argparse.Namespace) -> str | None:
    return _optional_str(getattr(args, "lang", None))


def _absolute(value: object) -> str | None:
    cleaned = _optional_str(value)
    if cleaned is None:
        return None
    return Path(cleaned).expanduser().resolve().as_posix()


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=EXIT_CONFIG_ERROR)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=EXIT_CONFIG_ERROR)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=EXIT_CONFIG_ERROR)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
