"""Unit tests for the id-keyed YAML list file service."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
import yaml

from listing_store.content.file_service import FileServiceError, YamlFileService

if TYPE_CHECKING:
    from pathlib import Path

_FIXED_NOW = datetime(2024, 6, 1, 12, 30, 45, 123000, tzinfo=UTC)


def _service(tmp_path: Path, **kwargs: object) -> YamlFileService:
    return YamlFileService("categories", tmp_path, clock=lambda: _FIXED_NOW, **kwargs)  # type: ignore[arg-type]


def _ids(records: list[dict[str, object]]) -> list[object]:
    return [record["id"] for record in records]


def test_missing_file_reads_as_empty(tmp_path: Path) -> None:
    service = _service(tmp_path)
    assert service.read() == []
    assert not service.file_exists()


def test_write_creates_parent_and_round_trips(tmp_path: Path) -> None:
    service = YamlFileService("tags", tmp_path / "nested", create_backups=False)
    service.write([{"id": "free", "name": "Free"}])

    assert service.file_path == tmp_path / "nested" / "tags.yml"
    assert yaml.safe_load(service.file_path.read_text(encoding="utf-8")) == [{"id": "free", "name": "Free"}]
    assert service.read() == [{"id": "free", "name": "Free"}]


def test_write_backs_up_existing_file(tmp_path: Path) -> None:
    service = _service(tmp_path)
    service.write([{"id": "a"}])
    assert not service.backup_directory_exists()

    service.write([{"id": "b"}])

    backup = tmp_path / "backups" / "categories.backup.2024-06-01T12-30-45-123Z.yml"
    assert backup.is_file()
    assert yaml.safe_load(backup.read_text(encoding="utf-8")) == [{"id": "a"}]


def test_add_item_upserts_by_id(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.add_item({"id": "a", "name": "A"})
    service.add_item({"id": "a", "icon_url": "/a.svg"})

    assert service.read() == [{"id": "a", "name": "A", "icon_url": "/a.svg"}]


def test_add_items_counts_added_updated_and_skipped(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write([{"id": "a", "name": "A"}])

    merged = service.add_items([{"id": "a", "name": "A2"}, {"id": "b"}])
    skipped = service.add_items([{"id": "a", "name": "A3"}, {"id": "c"}], skip_duplicates=True)

    assert (merged.added, merged.updated, merged.skipped) == (1, 1, 0)
    assert (skipped.added, skipped.updated, skipped.skipped) == (1, 0, 1)
    assert _ids(service.read()) == ["a", "b", "c"]
    assert service.find_by_id("a") == {"id": "a", "name": "A2"}


def test_positional_inserts(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write([{"id": "b"}, {"id": "d"}])

    service.add_item_first({"id": "a"})
    service.add_item_last({"id": "e"})
    assert service.add_item_after({"id": "c"}, "b") is True
    assert service.add_item_before({"id": "x"}, "missing") is False
    service.add_item_at({"id": "e"}, -5)

    assert _ids(service.read()) == ["e", "a", "b", "c", "d"]


def test_update_and_delete_by_id(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write([{"id": "a", "name": "A"}, {"id": "b", "name": "B"}])

    updated = service.update_by_id("a", {"name": "Alpha"})
    assert updated == {"id": "a", "name": "Alpha"}
    assert service.update_by_id("zzz", {"name": "nope"}) is None

    assert service.delete_by_id("b") is True
    assert service.delete_by_id("b") is False
    assert service.read() == [{"id": "a", "name": "Alpha"}]


def test_update_with_backup_writes_a_single_backup(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write([{"id": "a"}])

    service.update_by_id("a", {"name": "A"}, create_backup=True)

    assert len(list((tmp_path / "backups").iterdir())) == 1


def test_find_by_matches_all_criteria(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write(
        [
            {"id": "a", "kind": "tool", "free": True},
            {"id": "b", "kind": "tool", "free": False},
            {"id": "c", "kind": "game"},
        ]
    )
    assert _ids(service.find_by(kind="tool")) == ["a", "b"]
    assert _ids(service.find_by(kind="tool", free=True)) == ["a"]
    assert service.find_by(free=None) == []


def test_conditional_adds_require_existing_file(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)

    missing = service.add_items_if_file_exists([{"id": "a"}])
    appended_missing = service.add_content_to_existing_file([{"id": "a"}])
    assert missing.file_not_found is True
    assert appended_missing.file_not_found is True
    assert not service.file_exists()

    service.write([{"id": "a"}])
    result = service.add_items_if_file_exists([{"id": "a"}, {"id": "b"}])
    appended = service.add_content_to_existing_file([{"id": "a"}])

    assert (result.added, result.skipped, result.file_not_found) == (1, 1, False)
    assert appended.added == 1
    assert _ids(service.read()) == ["a", "b", "a"]


def test_read_applies_translation_overlay(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    service.write([{"id": "tools", "name": "Tools"}, {"id": "games", "name": "Games"}])
    (tmp_path / "categories.fr.yml").write_text("- id: tools\n  name: Outils\n", encoding="utf-8")

    assert service.read("fr") == [{"id": "tools", "name": "Outils"}, {"id": "games", "name": "Games"}]
    assert service.read("en")[0]["name"] == "Tools"
    assert service.read("de")[0]["name"] == "Tools"


def test_invalid_files_raise_file_service_error(tmp_path: Path) -> None:
    service = _service(tmp_path)
    service.file_path.write_text("id: not-a-list\n", encoding="utf-8")
    with pytest.raises(FileServiceError, match="expected a YAML list"):
        service.read()

    service.file_path.write_text("- [unterminated\n", encoding="utf-8")
    with pytest.raises(FileServiceError, match="categories"):
        service.read()


def test_stats_and_directory_info(tmp_path: Path) -> None:
    service = _service(tmp_path, create_backups=False)
    with pytest.raises(FileServiceError):
        service.get_stats()

    service.write([{"id": "a"}, {"id": "b"}])
    stats = service.get_stats()
    assert stats.item_count == 2
    assert stats.size > 0

    info = service.get_directory_info()
    assert info.base_dir_exists is True
    assert info.backup_dir_exists is False
    assert info.file_exists is True

    service.create_directories()
    assert service.backup_directory_exists()


def test_clear_empties_the_file(tmp_path: Path) -> None:
    service = _service(tmp_path)
    service.write([{"id": "a"}], create_backup=False)
    service.clear()
    assert service.read() == []
    assert service.backup_directory_exists()


def test_create_backup_with_explicit_timestamp(tmp_path: Path) -> None:
    service = _service(tmp_path, backup_dir=tmp_path / "archive")
    service.write([{"id": "a"}], create_backup=False)
    path = service.create_backup("manual")
    assert path == tmp_path / "archive" / "categories.backup.manual.yml"
    assert path.is_file()


@pytest.mark.parametrize("name", ["", "..", "a/b", "a\\b"])
def test_rejects_unsafe_file_names(tmp_path: Path, name: str) -> None:
    with pytest.raises(ValueError, match="invalid file name"):
        YamlFileService(name, tmp_path)
