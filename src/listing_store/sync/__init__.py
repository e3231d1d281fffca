"""Repository synchronization: git wrapper, synchronizer, and background manager."""

from listing_store.sync.git_engine import (
    GitAuthor,
    GitBranchError,
    GitCommandError,
    GitConflictError,
    GitEngine,
    GitEngineError,
    GitTimeoutError,
)
from listing_store.sync.manager import SyncFailedError, SyncManager, SyncResult, SyncStatus
from listing_store.sync.repository import ContentPathError, RepositorySynchronizer, SyncOutcome

__all__ = [
    "ContentPathError",
    "GitAuthor",
    "GitBranchError",
    "GitCommandError",
    "GitConflictError",
    "GitEngine",
    "GitEngineError",
    "GitTimeoutError",
    "RepositorySynchronizer",
    "SyncFailedError",
    "SyncManager",
    "SyncOutcome",
    "SyncResult",
    "SyncStatus",
]
