"""
listing-store — background sync manager.

Purpose
- Run repository syncs off the event loop with a single in-flight guard,
  a timeout, bounded retries, and cache invalidation on success.

Functional requirements
- A second sync requested while one runs is rejected, not queued.
- Failures schedule a retry after ``retry_delay_seconds`` until ``max_retries``
  is reached, then the retry counter resets.
- Successful syncs invalidate every content cache tier.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from listing_store.cache.invalidation import CacheInvalidator
from listing_store.config.settings import SyncSettings
from listing_store.observability import correlation_scope, get_logger
from listing_store.sync.repository import RepositorySynchronizer
from listing_store.utils.concurrency import CancellationToken, run_with_timeout

_LOGGER = get_logger("sync")


class SyncFailedError(RuntimeError):
    """Raised when the synchronizer fell back to local content."""


@dataclass(frozen=True, slots=True)
class SyncResult:
    success: bool
    message: str
    details: str | None = None
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "details": self.details,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True, slots=True)
class SyncStatus:
    is_running: bool
    last_sync_time: datetime | None
    last_sync_result: SyncResult | None
    next_sync_time: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "last_sync_time": _iso(self.last_sync_time),
            "last_sync_result": self.last_sync_result.to_dict() if self.last_sync_result else None,
            "next_sync_time": _iso(self.next_sync_time),
        }


class SyncManager:
    """Coordinates repository syncs for one content tree."""

    def __init__(
        self,
        synchronizer: RepositorySynchronizer,
        invalidator: CacheInvalidator,
        settings: SyncSettings,
        *,
        now: Callable[[], datetime] | None = None,
        monotonic: Callable[[], float] | None = None,
    ) -> None:
        self._synchronizer = synchronizer
        self._invalidator = invalidator
        self._settings = settings
        self._now = now or (lambda: datetime.now(UTC))
        self._monotonic = monotonic or time.monotonic
        self._in_progress = False
        self._last_sync_time: datetime | None = None
        self._last_sync_result: SyncResult | None = None
        self._retry_count = 0
        self._retry_task: asyncio.Task[SyncResult] | None = None

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def pending_retry(self) -> asyncio.Task[SyncResult] | None:
        task = self._retry_task
        if task is None or task.done():
            return None
        return task

    async def perform_sync(self) -> SyncResult:
        if not self._settings.enabled:
            _LOGGER.info("sync disabled by configuration")
            return SyncResult(
                success=True,
                message="Sync disabled",
                details="Background sync is skipped (sync.enabled = false)",
            )

        if self._in_progress:
            _LOGGER.info("sync already in progress, skipping")
            return SyncResult(
                success=False,
                message="Sync already in progress",
                details="Skipped to prevent concurrent sync operations",
            )

        self._in_progress = True
        started = self._monotonic()
        try:
            with correlation_scope(sync_id=uuid.uuid4().hex[:12]):
                _LOGGER.info("starting repository sync")
                try:
                    outcome = await run_with_timeout(
                        asyncio.to_thread(self._synchronizer.sync),
                        self._settings.timeout_seconds,
                    )
                    if not outcome.ok:
                        raise SyncFailedError(outcome.message or "repository unavailable")
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001 - recorded in the sync result
                    return self._record_failure(exc, self._elapsed_ms(started))
                return self._record_success(outcome.action, self._elapsed_ms(started))
        finally:
            self._in_progress = False

    def status(self) -> SyncStatus:
        next_sync = None
        if self._last_sync_time is not None:
            next_sync = self._last_sync_time + timedelta(seconds=self._settings.interval_seconds)
        return SyncStatus(
            is_running=self._in_progress,
            last_sync_time=self._last_sync_time,
            last_sync_result=self._last_sync_result,
            next_sync_time=next_sync,
        )

    async def trigger_manual_sync(self) -> SyncResult:
        _LOGGER.info("manual sync triggered")
        return await self.perform_sync()

    async def run_forever(self, cancel_token: CancellationToken) -> None:
        """Sync every ``interval_seconds`` until ``cancel_token`` is cancelled."""

        try:
            while not cancel_token.is_cancelled:
                await self.perform_sync()
                if await cancel_token.sleep(self._settings.interval_seconds):
                    break
        finally:
            await self.cancel_pending_retry()

    async def cancel_pending_retry(self) -> None:
        task = self.pending_retry
        self._retry_task = None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _record_success(self, action: str, duration_ms: int) -> SyncResult:
        self._last_sync_time = self._now()
        self._retry_count = 0
        result = SyncResult(
            success=True,
            message="Repository synchronized successfully",
            details=f"Sync completed in {duration_ms}ms ({action})",
            duration_ms=duration_ms,
        )
        self._last_sync_result = result
        _LOGGER.info("sync completed in %dms", duration_ms, extra={"action": action})
        self._invalidator.invalidate_content_caches()
        _LOGGER.info("content caches invalidated")
        return result

    def _record_failure(self, exc: Exception, duration_ms: int) -> SyncResult:
        reason = str(exc) or type(exc).__name__
        if isinstance(exc, TimeoutError):
            reason = "Sync timeout"
        _LOGGER.error("sync failed after %dms: %s", duration_ms, reason)

        max_retries = self._settings.max_retries
        result = SyncResult(
            success=False,
            message="Repository synchronization failed",
            details=f"{reason} (attempt {self._retry_count + 1}/{max_retries})",
            duration_ms=duration_ms,
        )
        self._last_sync_result = result

        if self._retry_count < max_retries:
            self._retry_count += 1
            _LOGGER.info(
                "scheduling retry %d/%d in %gs",
                self._retry_count,
                max_retries,
                self._settings.retry_delay_seconds,
            )
            self._retry_task = asyncio.create_task(self._retry_later(self._settings.retry_delay_seconds))
        else:
            _LOGGER.error("max retries (%d) reached, giving up", max_retries)
            self._retry_count = 0
        return result

    async def _retry_later(self, delay_seconds: float) -> SyncResult:
        await asyncio.sleep(delay_seconds)
        return await self.perform_sync()

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self._monotonic() - started) * 1000))


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="seconds").replace("+00:00", "Z")


__all__ = [
    "SyncFailedError",
    "SyncManager",
    "SyncResult",
    "SyncStatus",
]
