"""Core sync engine that orchestrates a reconciliation run."""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import S3SyncCancelledError
from ..models import IdentityScope
from ..storage import RemoteStorage
from .cancellation import CancellationToken
from .comparator import Reconciler, SyncActionRequest, SyncActionType
from .operations import ActionExecutor
from .progress import (
    STATUS_COMPLETE,
    STATUS_SCANNING_LOCAL,
    STATUS_SCANNING_REMOTE,
    ProgressSink,
    SyncProgress,
    syncing_status,
)
from .resolvers import ConflictResolver, validate_resolution
from .scanner import DirectoryScanner
from .state import SnapshotStore

logger = logging.getLogger(__name__)

# Stats key counted for each successfully executed action
_STAT_KEYS = {
    SyncActionType.UPLOAD: "uploads",
    SyncActionType.DOWNLOAD: "downloads",
    SyncActionType.DELETE_LOCAL: "deletes_local",
    SyncActionType.DELETE_REMOTE: "deletes_remote",
    SyncActionType.KEEP_BOTH: "keep_both",
    SyncActionType.PURGE_SNAPSHOT: "purged",
    SyncActionType.SKIP: "skips",
    SyncActionType.CONFLICT: "conflicts",
}


def _empty_stats() -> dict:
    return {
        "uploads": 0,
        "downloads": 0,
        "deletes_local": 0,
        "deletes_remote": 0,
        "keep_both": 0,
        "purged": 0,
        "skips": 0,
        "conflicts": 0,
        "failed": 0,
        "total": 0,
        "processed": 0,
        "cancelled": False,
    }


class SyncEngine:
    """Runs three-way sync between a local directory and a remote prefix.

    Examples:
        >>> store = SnapshotStateManager().open_store(Path("/sync"), "team")
        >>> engine = SyncEngine(S3Storage(bucket="files"), store)
        >>> stats = engine.sync(Path("/sync"), "team", IdentityScope.for_role(UserRole.USER))
        >>> print(f"Uploaded {stats['uploads']} files")
    """

    def __init__(
        self,
        storage: RemoteStorage,
        snapshot_store: SnapshotStore,
        executor: Optional[ActionExecutor] = None,
        scanner: Optional[DirectoryScanner] = None,
    ):
        """Initialize sync engine.

        Args:
            storage: Remote storage client
            snapshot_store: Snapshot store for this sync pair
            executor: Action executor (defaults to one over storage and store)
            scanner: Local scanner, also applied to the remote listing
        """
        self.storage = storage
        self.snapshot_store = snapshot_store
        self.executor = executor or ActionExecutor(storage, snapshot_store)
        self.scanner = scanner or DirectoryScanner()
        self.reconciler = Reconciler()

    def sync(
        self,
        local_path: Path,
        remote_prefix: str,
        scope: IdentityScope,
        progress: Optional[ProgressSink] = None,
        conflict_resolver: Optional[ConflictResolver] = None,
        cancel_token: Optional[CancellationToken] = None,
        dry_run: bool = False,
    ) -> dict:
        """Synchronize ``local_path`` with ``remote_prefix``.

        Actions run one at a time in path order. A failing action is logged
        and counted, and the run moves on; its snapshot entry is left
        unchanged so the path is reconsidered next time.

        Args:
            local_path: Local directory to sync
            remote_prefix: Remote prefix to sync with
            scope: Identity scope used for listing and upload tags
            progress: Optional sink receiving SyncProgress events
            conflict_resolver: Decides conflicts; without one they are skipped
            cancel_token: Checked before each action and during transfers
            dry_run: If True, classify only and execute nothing

        Returns:
            Dictionary with sync statistics

        Raises:
            ValueError: If local_path is not an existing directory
            S3SyncScanError: If the local tree cannot be scanned
            S3SyncAPIError: If the remote listing fails
        """
        if not local_path.exists():
            raise ValueError(f"Local directory does not exist: {local_path}")
        if not local_path.is_dir():
            raise ValueError(f"Local path is not a directory: {local_path}")

        def report(status: str, total: int = 0, processed: int = 0) -> None:
            if progress is not None:
                progress(SyncProgress(status, total, processed))

        stats = _empty_stats()
        sync_start = time.time()

        try:
            requests = self._plan(local_path, remote_prefix, scope, report, cancel_token)
        except S3SyncCancelledError:
            logger.info("Sync cancelled while scanning")
            stats["cancelled"] = True
            report(STATUS_COMPLETE)
            return stats

        stats["skips"] = sum(1 for r in requests if r.action == SyncActionType.SKIP)
        pending = [r for r in requests if r.action != SyncActionType.SKIP]
        stats["total"] = len(pending)
        stats["conflicts"] = sum(
            1 for r in pending if r.action == SyncActionType.CONFLICT
        )

        if dry_run:
            for request in pending:
                if request.action != SyncActionType.CONFLICT:
                    stats[_STAT_KEYS[request.action]] += 1
                logger.info(
                    f"[dry run] {request.action.value}: {request.path} ({request.reason})"
                )
            report(STATUS_COMPLETE, stats["total"], 0)
            return stats

        processed = 0
        for request in pending:
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info(f"Sync cancelled after {processed} of {len(pending)} actions")
                stats["cancelled"] = True
                break

            report(syncing_status(request.path), stats["total"], processed)
            self._process(
                request,
                local_path,
                remote_prefix,
                scope,
                conflict_resolver,
                cancel_token,
                stats,
            )
            processed += 1

        stats["processed"] = processed
        report(STATUS_COMPLETE, stats["total"], processed)
        logger.debug(
            f"Sync of {local_path} <-> {remote_prefix or '/'} took "
            f"{time.time() - sync_start:.2f}s"
        )
        return stats

    def _plan(
        self,
        local_path: Path,
        remote_prefix: str,
        scope: IdentityScope,
        report: Callable[[str], None],
        cancel_token: Optional[CancellationToken],
    ) -> list[SyncActionRequest]:
        """Scan both sides, load the snapshot and classify every path."""
        report(STATUS_SCANNING_LOCAL)
        scan_start = time.time()
        local_files = self.scanner.scan_local(local_path)
        logger.debug(
            f"Found {len(local_files)} local file(s) in {time.time() - scan_start:.2f}s"
        )
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        report(STATUS_SCANNING_REMOTE)
        scan_start = time.time()
        remote_nodes = self.storage.list_files(remote_prefix, scope, cancel_token)
        remote_files = self.scanner.filter_nodes(remote_nodes)
        logger.debug(
            f"Found {len(remote_files)} remote file(s) in "
            f"{time.time() - scan_start:.2f}s"
        )

        snapshots = self.snapshot_store.list_all()

        return self.reconciler.reconcile(
            {f.path: f for f in local_files},
            {f.path: f for f in remote_files},
            {s.path: s for s in snapshots},
        )

    def _process(
        self,
        request: SyncActionRequest,
        local_path: Path,
        remote_prefix: str,
        scope: IdentityScope,
        conflict_resolver: Optional[ConflictResolver],
        cancel_token: Optional[CancellationToken],
        stats: dict,
    ) -> None:
        """Resolve and execute one request, recording the outcome in stats."""
        try:
            if request.action == SyncActionType.CONFLICT:
                if conflict_resolver is None:
                    request.action = SyncActionType.SKIP
                else:
                    request.action = validate_resolution(conflict_resolver(request))
                logger.info(
                    f"Conflict on {request.path} ({request.reason}) "
                    f"resolved as {request.action.value}"
                )

            if request.action == SyncActionType.SKIP:
                stats["skips"] += 1
                return

            self.executor.execute(
                request, local_path, remote_prefix, scope, cancel_token
            )
        except Exception as e:
            stats["failed"] += 1
            if isinstance(e, S3SyncCancelledError):
                logger.warning(f"{request.action.value} of {request.path} cancelled")
            else:
                logger.warning(
                    f"Failed to {request.action.value} {request.path}: {e}",
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
            return

        stats[_STAT_KEYS[request.action]] += 1
        logger.info(f"{request.action.value}: {request.path}")
