"""Utility exports for filesystem and concurrency helpers."""

from listing_store.utils.concurrency import CancellationToken, run_with_timeout
from listing_store.utils.fs import atomic_write, safe_delete

__all__ = [
    "CancellationToken",
    "atomic_write",
    "run_with_timeout",
    "safe_delete",
]
