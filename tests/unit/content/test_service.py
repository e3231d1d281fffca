"""Unit tests for the cached content service."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from listing_store.cache.store import ContentCache
from listing_store.cache.ttl import CacheTier
from listing_store.config.settings import FileSettings, StoreSettings
from listing_store.content.service import ContentService
from listing_store.sync.repository import SyncOutcome

if TYPE_CHECKING:
    from pathlib import Path


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class _StubSynchronizer:
    def __init__(self, *actions: str, heads: tuple[str | None, ...] = ()) -> None:
        self._actions = list(actions)
        self._heads = list(heads)
        self.calls = 0

    def sync(self) -> SyncOutcome:
        self.calls += 1
        action = self._actions.pop(0) if self._actions else "skipped"
        head = self._heads.pop(0) if self._heads else None
        return SyncOutcome(action=action, head=head)  # type: ignore[arg-type]


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _build_tree(root: Path) -> None:
    _write(root / "config.yml", "company_name: Acme\n")
    _write(root / "categories.yml", "- id: tools\n  name: Tools\n")
    _write(root / "tags.yml", "- id: free\n  name: Free\n")
    _write(root / "data" / "alpha" / "alpha.yml", "name: Alpha\ncategory: tools\ntags: [free]\n")
    _write(root / "data" / "alpha" / "alpha.md", "# Alpha\n")
    _write(root / "data" / "beta" / "beta.yml", "name: Beta\ncategory: tools\n")
    _write(root / "data" / "gamma" / "gamma.yml", "name: Gamma\ntags: [paid]\n")


def _service(root: Path, **kwargs: object) -> ContentService:
    settings = StoreSettings.for_content_path(root)
    return ContentService(settings, **kwargs)  # type: ignore[arg-type]


def test_fetch_items_is_served_from_cache(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)

    first = service.fetch_items()
    second = service.fetch_items()

    assert [item.slug for item in first.items] == [item.slug for item in second.items]
    stats = service.cache.stats()["items"]
    assert stats["misses"] == 1
    assert stats["hits"] == 1


def test_returned_values_are_copies(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)

    result = service.fetch_items()
    result.items[0].name = "mutated"
    result.items.clear()

    again = service.fetch_items()
    assert again.total == 3
    assert "mutated" not in {item.name for item in again.items}


def test_languages_are_cached_separately(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    _write(tmp_path / "data" / "alpha" / "alpha.fr.yml", "name: Alpha FR\n")
    service = _service(tmp_path)

    english = service.fetch_item("alpha")
    french = service.fetch_item("alpha", "fr")
    default = service.fetch_item("alpha", "en")

    assert english is not None and english.meta.name == "Alpha"
    assert french is not None and french.meta.name == "Alpha FR"
    assert default is not None and default.meta.name == "Alpha"
    assert service.cache.tier(CacheTier.ITEMS).stats().hits >= 1


def test_category_and_tag_views(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)

    tools = service.fetch_by_category("tools")
    paid = service.fetch_by_tag("paid")

    assert sorted(item.slug for item in tools.items) == ["alpha", "beta"]
    assert [item.slug for item in paid.items] == ["gamma"]
    assert {entry.id: entry.count for entry in service.get_categories()} == {"tools": 2}
    assert {entry.id: entry.count for entry in service.get_tags()} == {"free": 1, "paid": 1}


def test_get_config_and_missing_item(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)

    assert service.get_config().company_name == "Acme"
    assert service.fetch_item("nope") is None


def test_similar_items_ranks_and_handles_unknown_slug(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)

    similar = service.similar_items("alpha")

    assert similar is not None
    assert [item.slug for item, _ in similar] == ["beta"]
    assert service.similar_items("missing") is None
    assert service.similar_items("missing") is None


def test_content_change_invalidates_caches(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    service = _service(tmp_path)
    assert service.fetch_items().total == 3

    _write(tmp_path / "data" / "delta" / "delta.yml", "name: Delta\n")

    assert service.fetch_items().total == 4


def test_mtime_checks_can_be_disabled(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    base = StoreSettings.for_content_path(tmp_path)
    settings = replace(base, cache=replace(base.cache, check_mtime=False))
    service = ContentService(settings)
    assert service.fetch_items().total == 3

    _write(tmp_path / "data" / "delta" / "delta.yml", "name: Delta\n")

    assert service.fetch_items().total == 3


def test_pull_that_moves_head_invalidates_caches(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    clock = _FakeClock()
    cache = ContentCache(StoreSettings.for_content_path(tmp_path).cache, clock=clock)
    synchronizer = _StubSynchronizer("skipped", "pulled", heads=("aaa", "bbb"))
    service = _service(tmp_path, cache=cache, synchronizer=synchronizer)

    service.fetch_items()
    service.fetch_items()

    assert synchronizer.calls == 2
    assert cache.stats()["items"]["misses"] == 2


def test_pull_without_new_commits_keeps_caches(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    synchronizer = _StubSynchronizer("pulled", "pulled", "pulled", heads=("abc", "abc", "abc"))
    service = _service(tmp_path, synchronizer=synchronizer)

    for _ in range(3):
        assert service.fetch_items().total == 3

    assert synchronizer.calls == 3
    stats = service.cache.stats()["items"]
    assert stats["misses"] == 1
    assert stats["hits"] == 2


def test_reclone_always_invalidates_caches(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    synchronizer = _StubSynchronizer("skipped", "recloned", heads=("abc", "abc"))
    service = _service(tmp_path, synchronizer=synchronizer)

    service.fetch_items()
    service.fetch_items()

    assert service.cache.stats()["items"]["misses"] == 2


def test_disabled_sync_never_calls_synchronizer(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    base = StoreSettings.for_content_path(tmp_path)
    settings = replace(base, sync=replace(base.sync, enabled=False))
    synchronizer = _StubSynchronizer("pulled")
    service = ContentService(settings, synchronizer=synchronizer)  # type: ignore[arg-type]

    service.fetch_items()

    assert synchronizer.calls == 0


def test_file_service_uses_file_settings(tmp_path: Path) -> None:
    _build_tree(tmp_path)
    base = StoreSettings.for_content_path(tmp_path)
    settings = replace(
        base,
        files=FileSettings(create_backups=True, backup_dir=tmp_path / "archive", yaml_indent=4),
    )
    service = ContentService(settings)

    categories = service.file_service("categories")
    categories.add_item({"id": "games", "name": "Games"})

    assert categories.file_path == tmp_path / "categories.yml"
    assert len(list((tmp_path / "archive").iterdir())) == 1
    assert {entry.id for entry in service.get_categories()} == {"tools", "games"}
