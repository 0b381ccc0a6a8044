"""Sync engine for pys3sync - three-way reconciliation and execution."""

from .cancellation import CancellationToken
from .comparator import Reconciler, SyncActionRequest, SyncActionType, is_changed
from .engine import SyncEngine
from .operations import ActionExecutor, build_operation
from .progress import ProgressSink, SyncProgress
from .resolvers import (
    RESOLVERS,
    ConflictResolver,
    get_resolver,
    keep_both,
    newest_wins,
    prefer_local,
    prefer_remote,
    skip_conflicts,
)
from .scanner import DirectoryScanner
from .state import SnapshotStateManager, SnapshotStore, SqliteSnapshotStore

__all__ = [
    "SyncEngine",
    "ActionExecutor",
    "build_operation",
    "CancellationToken",
    "Reconciler",
    "SyncActionRequest",
    "SyncActionType",
    "is_changed",
    "SyncProgress",
    "ProgressSink",
    "ConflictResolver",
    "RESOLVERS",
    "get_resolver",
    "skip_conflicts",
    "newest_wins",
    "prefer_local",
    "prefer_remote",
    "keep_both",
    "DirectoryScanner",
    "SnapshotStore",
    "SqliteSnapshotStore",
    "SnapshotStateManager",
]
