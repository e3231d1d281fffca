"""
listing-store — YAML list file service.

Purpose
- Persist a YAML list of ``{id, ...}`` records under the content tree.

What should be included in this file
- Upsert, positional insert, update, delete and query helpers keyed by ``id``.
- Timestamped backups before destructive writes.
- Translation overlays read from ``<name>.<lang>.yml``.

Functional requirements
- Writes are atomic; a failed write leaves the previous file intact.
- Read or write failures raise ``FileServiceError`` naming the file.
- A missing file reads as an empty list.
"""

from __future__ import annotations

import copy
import shutil
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from listing_store.constants import BACKUPS_DIR, DEFAULT_LANG, YAML_EXTENSION
from listing_store.observability import get_logger
from listing_store.utils.fs import atomic_write

_LOGGER = get_logger("files")

Record = dict[str, Any]


class FileServiceError(RuntimeError):
    """Raised when a YAML list file cannot be read or written."""


@dataclass(frozen=True, slots=True)
class AddItemsResult:
    added: int
    updated: int
    skipped: int


@dataclass(frozen=True, slots=True)
class ConditionalAddResult:
    added: int
    skipped: int
    file_not_found: bool


@dataclass(frozen=True, slots=True)
class AppendResult:
    added: int
    file_not_found: bool


@dataclass(frozen=True, slots=True)
class FileStats:
    size: int
    last_modified: datetime
    item_count: int


@dataclass(frozen=True, slots=True)
class DirectoryInfo:
    base_dir: Path
    backup_dir: Path
    base_dir_exists: bool
    backup_dir_exists: bool
    file_path: Path
    file_exists: bool


class YamlFileService:
    """Generic id-keyed record store backed by one YAML file."""

    def __init__(
        self,
        file_name: str,
        base_dir: Path | str,
        *,
        extension: str = YAML_EXTENSION,
        create_backups: bool = True,
        backup_dir: Path | str | None = None,
        yaml_indent: int = 2,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not file_name or "/" in file_name or "\\" in file_name or file_name in {".", ".."}:
            raise ValueError(f"invalid file name: {file_name!r}")
        self.file_name = file_name
        self.base_dir = Path(base_dir)
        self.extension = extension
        self.create_backups = create_backups
        self.backup_dir = Path(backup_dir) if backup_dir is not None else self.base_dir / BACKUPS_DIR
        self.yaml_indent = yaml_indent
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def file_path(self) -> Path:
        return self.base_dir / f"{self.file_name}{self.extension}"

    def read(self, lang: str | None = None) -> list[Record]:
        data = self._read_file(self.file_path)
        if lang and lang != DEFAULT_LANG:
            return self._apply_translations(data, lang)
        return data

    def write(self, data: Sequence[Mapping[str, Any]], create_backup: bool | None = None) -> None:
        if self._backup_requested(create_backup) and self.file_exists():
            self.create_backup()
        payload = [dict(record) for record in data]
        try:
            text = yaml.safe_dump(
                payload,
                indent=self.yaml_indent,
                sort_keys=False,
                allow_unicode=True,
                default_flow_style=False,
            )
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(self.file_path, text)
        except (OSError, yaml.YAMLError) as exc:
            raise FileServiceError(f"failed to write {self.file_name}: {exc}") from exc
        _LOGGER.debug("wrote %d records to %s", len(payload), self.file_path)

    def append(self, new_data: Sequence[Mapping[str, Any]], create_backup: bool | None = None) -> None:
        self.write([*self.read(), *new_data], create_backup)

    def add_item(self, item: Mapping[str, Any], create_backup: bool | None = None) -> None:
        """Insert ``item`` or merge it into the record with the same id."""

        data = self.read()
        index = _index_of(data, item["id"])
        if index is None:
            data.append(dict(item))
        else:
            data[index] = {**data[index], **item}
        self.write(data, create_backup)

    def add_items(
        self,
        items: Sequence[Mapping[str, Any]],
        create_backup: bool | None = None,
        skip_duplicates: bool = False,
    ) -> AddItemsResult:
        data = self.read()
        added = updated = skipped = 0
        for item in items:
            index = _index_of(data, item["id"])
            if index is None:
                data.append(dict(item))
                added += 1
            elif skip_duplicates:
                skipped += 1
            else:
                data[index] = {**data[index], **item}
                updated += 1
        self.write(data, create_backup)
        return AddItemsResult(added=added, updated=updated, skipped=skipped)

    def add_item_at(self, item: Mapping[str, Any], position: int, create_backup: bool | None = None) -> None:
        """Move or insert ``item`` at ``position`` (clamped to the list bounds)."""

        data = self.read()
        index = _index_of(data, item["id"])
        if index is not None:
            del data[index]
        insert_at = max(0, min(position, len(data)))
        data.insert(insert_at, dict(item))
        self.write(data, create_backup)

    def add_item_first(self, item: Mapping[str, Any], create_backup: bool | None = None) -> None:
        self.add_item_at(item, 0, create_backup)

    def add_item_last(self, item: Mapping[str, Any], create_backup: bool | None = None) -> None:
        self.add_item_at(item, len(self.read()), create_backup)

    def add_item_after(self, item: Mapping[str, Any], after_id: str, create_backup: bool | None = None) -> bool:
        index = _index_of(self.read(), after_id)
        if index is None:
            return False
        self.add_item_at(item, index + 1, create_backup)
        return True

    def add_item_before(self, item: Mapping[str, Any], before_id: str, create_backup: bool | None = None) -> bool:
        index = _index_of(self.read(), before_id)
        if index is None:
            return False
        self.add_item_at(item, index, create_backup)
        return True

    def add_items_if_file_exists(
        self,
        items: Sequence[Mapping[str, Any]],
        create_backup: bool | None = None,
    ) -> ConditionalAddResult:
        """Add only new ids to an existing file; never creates the file."""

        if not self.file_exists():
            return ConditionalAddResult(added=0, skipped=0, file_not_found=True)
        data = self.read()
        added = skipped = 0
        for item in items:
            if _index_of(data, item["id"]) is not None:
                skipped += 1
            else:
                data.append(dict(item))
                added += 1
        if added:
            self.write(data, create_backup)
        return ConditionalAddResult(added=added, skipped=skipped, file_not_found=False)

    def add_content_to_existing_file(
        self,
        items: Sequence[Mapping[str, Any]],
        create_backup: bool | None = None,
    ) -> AppendResult:
        if not self.file_exists():
            return AppendResult(added=0, file_not_found=True)
        self.write([*self.read(), *items], create_backup)
        return AppendResult(added=len(items), file_not_found=False)

    def update_by_id(
        self,
        record_id: str,
        updated: Mapping[str, Any],
        create_backup: bool | None = None,
    ) -> Record | None:
        data = self.read()
        index = _index_of(data, record_id)
        if index is None:
            return None
        if self._backup_requested(create_backup):
            self.create_backup()
        data[index] = {**data[index], **updated}
        self.write(data, False)
        return copy.deepcopy(data[index])

    def delete_by_id(self, record_id: str, create_backup: bool | None = None) -> bool:
        data = self.read()
        remaining = [record for record in data if record.get("id") != record_id]
        if len(remaining) == len(data):
            return False
        if self._backup_requested(create_backup):
            self.create_backup()
        self.write(remaining, False)
        return True

    def find_by_id(self, record_id: str) -> Record | None:
        for record in self.read():
            if record.get("id") == record_id:
                return record
        return None

    def find_by(self, **criteria: Any) -> list[Record]:
        return [
            record
            for record in self.read()
            if all(key in record and record[key] == value for key, value in criteria.items())
        ]

    def file_exists(self) -> bool:
        return self.file_path.is_file()

    def create_backup(self, timestamp: str | None = None) -> Path:
        """Copy the current file into the backup directory and return the backup path."""

        backup_path = self._backup_path(timestamp)
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            if self.file_exists():
                shutil.copyfile(self.file_path, backup_path)
        except OSError as exc:
            raise FileServiceError(f"failed to back up {self.file_name}: {exc}") from exc
        _LOGGER.info("backed up %s to %s", self.file_path.name, backup_path)
        return backup_path

    def get_stats(self) -> FileStats:
        try:
            stat = self.file_path.stat()
        except OSError as exc:
            raise FileServiceError(f"failed to stat {self.file_name}: {exc}") from exc
        return FileStats(
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            item_count=len(self.read()),
        )

    def clear(self, create_backup: bool | None = None) -> None:
        if self._backup_requested(create_backup):
            self.create_backup()
        self.write([], False)

    def create_directories(self, create_backup_dir: bool = True) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if create_backup_dir:
            self.backup_dir.mkdir(parents=True, exist_ok=True)

    def base_directory_exists(self) -> bool:
        return self.base_dir.is_dir()

    def backup_directory_exists(self) -> bool:
        return self.backup_dir.is_dir()

    def get_directory_info(self) -> DirectoryInfo:
        return DirectoryInfo(
            base_dir=self.base_dir,
            backup_dir=self.backup_dir,
            base_dir_exists=self.base_directory_exists(),
            backup_dir_exists=self.backup_directory_exists(),
            file_path=self.file_path,
            file_exists=self.file_exists(),
        )

    def _backup_requested(self, create_backup: bool | None) -> bool:
        return self.create_backups if create_backup is None else create_backup

    def _backup_path(self, timestamp: str | None) -> Path:
        if timestamp is None:
            now = self._clock().astimezone(UTC)
            iso = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
            timestamp = iso.replace(":", "-").replace(".", "-")
        return self.backup_dir / f"{self.file_name}.backup.{timestamp}{self.extension}"

    def _read_file(self, path: Path) -> list[Record]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as exc:
            raise FileServiceError(f"failed to read {self.file_name}: {exc}") from exc
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise FileServiceError(f"failed to read {self.file_name}: {exc}") from exc
        if parsed is None:
            return []
        if not isinstance(parsed, list):
            raise FileServiceError(f"failed to read {self.file_name}: expected a YAML list")
        return [dict(record) for record in parsed if isinstance(record, Mapping)]

    def _apply_translations(self, data: list[Record], lang: str) -> list[Record]:
        translation_path = self.base_dir / f"{self.file_name}.{lang}{self.extension}"
        try:
            translations = self._read_file(translation_path)
        except FileServiceError as exc:
            _LOGGER.warning("failed to apply %s translations for %s: %s", lang, self.file_name, exc)
            return data
        by_id = {record.get("id"): record for record in translations}
        return [{**record, **by_id[record["id"]]} if record.get("id") in by_id else record for record in data]


def _index_of(data: Sequence[Mapping[str, Any]], record_id: object) -> int | None:
    for index, record in enumerate(data):
        if record.get("id") == record_id:
            return index
    return None


__all__ = [
    "AddItemsResult",
    "AppendResult",
    "ConditionalAddResult",
    "DirectoryInfo",
    "FileServiceError",
    "FileStats",
    "YamlFileService",
]
