"""Async tests for the background sync manager."""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from listing_store.cache.invalidation import CacheInvalidator
from listing_store.cache.store import ContentCache
from listing_store.cache.ttl import CacheTier
from listing_store.config.settings import SyncSettings
from listing_store.sync.manager import SyncManager, SyncResult
from listing_store.sync.repository import SyncOutcome
from listing_store.utils.concurrency import CancellationToken

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

_NOW = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)


class _StubSynchronizer:
    def __init__(self, *actions: str, gate: threading.Event | None = None) -> None:
        self._actions = list(actions)
        self._gate = gate
        self.calls = 0

    def sync(self) -> SyncOutcome:
        self.calls += 1
        if self._gate is not None:
            self._gate.wait(timeout=5)
        action = self._actions.pop(0) if self._actions else "pulled"
        return SyncOutcome(action=action, message=f"{action} outcome")  # type: ignore[arg-type]


class _ExplodingSynchronizer:
    def __init__(self) -> None:
        self.calls = 0

    def sync(self) -> SyncOutcome:
        self.calls += 1
        raise OSError("disk full")


def _manager(
    tmp_path: Path,
    synchronizer: object,
    **overrides: object,
) -> tuple[SyncManager, ContentCache]:
    cache = ContentCache()
    invalidator = CacheInvalidator(cache, tmp_path)
    settings = SyncSettings(
        **{
            "retry_delay_seconds": 0.01,
            "max_retries": 2,
            "timeout_seconds": 5.0,
            "interval_seconds": 60.0,
            **overrides,
        }
    )
    manager = SyncManager(synchronizer, invalidator, settings, now=lambda: _NOW)  # type: ignore[arg-type]
    return manager, cache


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def test_disabled_sync_is_a_successful_no_op(tmp_path: Path) -> None:
    synchronizer = _StubSynchronizer()
    manager, _ = _manager(tmp_path, synchronizer, enabled=False)

    result = await manager.perform_sync()

    assert result.success is True
    assert result.message == "Sync disabled"
    assert synchronizer.calls == 0


async def test_successful_sync_records_status_and_invalidates(tmp_path: Path) -> None:
    manager, cache = _manager(tmp_path, _StubSynchronizer("pulled"))
    cache.set(CacheTier.ITEMS, "items", [1])

    result = await manager.perform_sync()

    assert result.success is True
    assert result.message == "Repository synchronized successfully"
    assert result.duration_ms is not None
    assert cache.get(CacheTier.ITEMS, "items") is None
    status = manager.status()
    assert status.is_running is False
    assert status.last_sync_time == _NOW
    assert status.last_sync_result == result
    assert status.to_dict()["last_sync_time"] == "2025-01-02T03:04:05Z"
    assert status.to_dict()["next_sync_time"] == "2025-01-02T03:05:05Z"


async def test_fallback_counts_as_failure_and_schedules_retry(tmp_path: Path) -> None:
    synchronizer = _StubSynchronizer("fallback", "pulled")
    manager, _ = _manager(tmp_path, synchronizer, retry_delay_seconds=0.01)

    result = await manager.perform_sync()

    assert result.success is False
    assert result.message == "Repository synchronization failed"
    assert result.details == "fallback outcome (attempt 1/2)"
    assert manager.retry_count == 1
    retry = manager.pending_retry
    assert retry is not None

    retried = await retry
    assert retried.success is True
    assert manager.retry_count == 0
    assert synchronizer.calls == 2


async def test_retries_stop_after_max_and_counter_resets(tmp_path: Path) -> None:
    synchronizer = _ExplodingSynchronizer()
    manager, _ = _manager(tmp_path, synchronizer, max_retries=2)

    first = await manager.perform_sync()
    await _wait_for(lambda: synchronizer.calls == 3 and manager.pending_retry is None)

    assert first.details == "disk full (attempt 1/2)"
    assert manager.retry_count == 0
    last = manager.status().last_sync_result
    assert last is not None
    assert last.details == "disk full (attempt 3/2)"
    assert manager.status().last_sync_time is None


async def test_concurrent_sync_is_rejected(tmp_path: Path) -> None:
    gate = threading.Event()
    synchronizer = _StubSynchronizer("pulled", gate=gate)
    manager, _ = _manager(tmp_path, synchronizer)

    running = asyncio.create_task(manager.perform_sync())
    await _wait_for(lambda: synchronizer.calls == 1)
    assert manager.status().is_running is True

    second = await manager.perform_sync()
    gate.set()
    first = await running

    assert second == SyncResult(
        success=False,
        message="Sync already in progress",
        details="Skipped to prevent concurrent sync operations",
    )
    assert first.success is True
    assert synchronizer.calls == 1


async def test_timeout_is_reported_as_failure(tmp_path: Path) -> None:
    gate = threading.Event()
    manager, _ = _manager(tmp_path, _StubSynchronizer("pulled", gate=gate), timeout_seconds=0.05)

    try:
        result = await manager.perform_sync()
    finally:
        gate.set()
    await manager.cancel_pending_retry()

    assert result.success is False
    assert result.details is not None
    assert result.details.startswith("Sync timeout")
    assert manager.pending_retry is None


async def test_trigger_manual_sync_runs_a_sync(tmp_path: Path) -> None:
    synchronizer = _StubSynchronizer("cloned")
    manager, _ = _manager(tmp_path, synchronizer)

    result = await manager.trigger_manual_sync()

    assert result.success is True
    assert result.details is not None and "(cloned)" in result.details


async def test_run_forever_loops_until_cancelled(tmp_path: Path) -> None:
    synchronizer = _StubSynchronizer()
    manager, _ = _manager(tmp_path, synchronizer, interval_seconds=0.01)
    token = CancellationToken()

    loop_task = asyncio.create_task(manager.run_forever(token))
    await _wait_for(lambda: synchronizer.calls >= 3)
    token.cancel()
    await asyncio.wait_for(loop_task, timeout=2)

    assert loop_task.done()
    assert manager.status().last_sync_result is not None


async def test_status_before_any_sync(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path, _StubSynchronizer())
    assert manager.status().to_dict() == {
        "is_running": False,
        "last_sync_time": None,
        "last_sync_result": None,
        "next_sync_time": None,
    }
