"""Execution of classified sync actions against the local tree and remote storage."""

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Union

import send2trash

from ..exceptions import S3SyncUploadError
from ..models import FileNode, IdentityScope
from ..storage import RemoteStorage
from ..utils import conflict_copy_path, join_remote_key
from .cancellation import CancellationToken
from .comparator import SyncActionRequest, SyncActionType
from .state import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Upload:
    path: str
    local: FileNode


@dataclass(frozen=True)
class Download:
    path: str
    remote: FileNode


@dataclass(frozen=True)
class DeleteLocal:
    path: str
    local: Optional[FileNode]


@dataclass(frozen=True)
class DeleteRemote:
    path: str
    remote: Optional[FileNode]


@dataclass(frozen=True)
class KeepBoth:
    path: str
    local: Optional[FileNode]
    remote: FileNode


@dataclass(frozen=True)
class PurgeSnapshot:
    path: str


SyncOperation = Union[Upload, Download, DeleteLocal, DeleteRemote, KeepBoth, PurgeSnapshot]

_DELETIONS = (DeleteLocal, DeleteRemote, PurgeSnapshot)


def build_operation(request: SyncActionRequest) -> SyncOperation:
    """Turn a classified request into the operation it describes.

    Args:
        request: Request whose action is neither SKIP nor CONFLICT

    Returns:
        Typed operation carrying only the fields it needs

    Raises:
        ValueError: If the action is not executable or a required side is missing
    """
    action = request.action
    path = request.path

    if action == SyncActionType.UPLOAD:
        if request.local is None:
            raise ValueError(f"Cannot upload {path}: no local file")
        return Upload(path, request.local)
    if action == SyncActionType.DOWNLOAD:
        if request.remote is None:
            raise ValueError(f"Cannot download {path}: no remote file")
        return Download(path, request.remote)
    if action == SyncActionType.DELETE_LOCAL:
        return DeleteLocal(path, request.local)
    if action == SyncActionType.DELETE_REMOTE:
        return DeleteRemote(path, request.remote)
    if action == SyncActionType.KEEP_BOTH:
        if request.remote is None:
            raise ValueError(f"Cannot keep both versions of {path}: no remote file")
        return KeepBoth(path, request.local, request.remote)
    if action == SyncActionType.PURGE_SNAPSHOT:
        return PurgeSnapshot(path)
    raise ValueError(f"Action {action.value} for {path} is not executable")


class ActionExecutor:
    """Performs one sync action and records its outcome in the snapshot store."""

    def __init__(
        self,
        storage: RemoteStorage,
        snapshot_store: SnapshotStore,
        use_trash: bool = False,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize the executor.

        Args:
            storage: Remote storage client
            snapshot_store: Snapshot store updated after each action
            use_trash: Move deleted local files to the system trash
            progress_callback: Optional transfer progress callback
                function(bytes_transferred, total_bytes)
        """
        self.storage = storage
        self.snapshot_store = snapshot_store
        self.use_trash = use_trash
        self.progress_callback = progress_callback
        self._handlers: dict[type, Callable[..., None]] = {
            Upload: self._upload,
            Download: self._download,
            DeleteLocal: self._delete_local,
            DeleteRemote: self._delete_remote,
            KeepBoth: self._keep_both,
            PurgeSnapshot: self._purge_snapshot,
        }

    def execute(
        self,
        request: SyncActionRequest,
        local_root: Path,
        remote_prefix: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """Execute a single request.

        On success, deletions remove the path's snapshot entry and every
        other action records the resulting local file. Nothing is retried.

        Args:
            request: Request whose action is neither SKIP nor CONFLICT
            local_root: Root of the local tree
            remote_prefix: Remote prefix the tree is synced with
            scope: Identity scope; its roles tag uploads
            cancel_token: Optional token forwarded to transfers
        """
        operation = build_operation(request)
        local_path = self._resolve_local_path(local_root, request.path)
        remote_key = join_remote_key(remote_prefix, request.path)

        action_start = time.time()
        self._handlers[type(operation)](
            operation, local_path, remote_key, scope, cancel_token
        )
        self._record(operation, local_root, local_path, remote_key)
        logger.debug(
            f"{request.action.value} of {request.path} took "
            f"{time.time() - action_start:.2f}s"
        )

    @staticmethod
    def _resolve_local_path(local_root: Path, relative_path: str) -> Path:
        """Map a relative path into the local tree, refusing to escape it.

        Only the parent directory is resolved. The last component is kept
        as is, so a symlinked file is acted on as the link itself.
        """
        root = local_root.resolve()
        relative = PurePosixPath(relative_path)
        if relative.name in ("", ".", ".."):
            raise ValueError(f"Path escapes the sync root: {relative_path}")
        parent = (root / relative.parent).resolve()
        if parent != root and root not in parent.parents:
            raise ValueError(f"Path escapes the sync root: {relative_path}")
        return parent / relative.name

    def _upload(
        self,
        operation: Upload,
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        logger.debug(f"Uploading {operation.path} to {remote_key}...")
        uploaded = self.storage.upload_file(
            local_path,
            remote_key,
            scope.tag_roles,
            progress_callback=self.progress_callback,
            cancel_token=cancel_token,
        )
        if not uploaded:
            raise S3SyncUploadError(f"Upload of {operation.path} was rejected")

    def _download(
        self,
        operation: Union[Download, KeepBoth],
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        logger.debug(f"Downloading {remote_key} to {operation.path}...")
        self.storage.download_file(
            remote_key,
            local_path,
            progress_callback=self.progress_callback,
            cancel_token=cancel_token,
        )

    def _delete_local(
        self,
        operation: DeleteLocal,
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        if not local_path.exists():
            logger.debug(f"{operation.path} already absent locally")
            return
        if self.use_trash:
            send2trash.send2trash(str(local_path))
            logger.debug(f"Moved {operation.path} to trash")
        else:
            local_path.unlink()
            logger.debug(f"Deleted local {operation.path}")

    def _delete_remote(
        self,
        operation: DeleteRemote,
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        logger.debug(f"Deleting remote {remote_key}...")
        self.storage.delete_file(remote_key, cancel_token=cancel_token)

    def _keep_both(
        self,
        operation: KeepBoth,
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        if local_path.exists():
            copy_path = conflict_copy_path(local_path)
            local_path.rename(copy_path)
            logger.info(f"Kept local version of {operation.path} as {copy_path.name}")
        self._download(operation, local_path, remote_key, scope, cancel_token)

    def _purge_snapshot(
        self,
        operation: PurgeSnapshot,
        local_path: Path,
        remote_key: str,
        scope: IdentityScope,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        logger.debug(f"{operation.path} is gone on both sides")

    def _record(
        self,
        operation: SyncOperation,
        local_root: Path,
        local_path: Path,
        remote_key: str,
    ) -> None:
        """Update the snapshot store after a successful operation."""
        if isinstance(operation, _DELETIONS):
            self.snapshot_store.delete(operation.path)
            return

        if not local_path.is_file():
            logger.warning(
                f"{operation.path} missing after {type(operation).__name__}; "
                "snapshot not updated"
            )
            return

        node = FileNode.from_path(local_path, local_root.resolve())
        # Keep the key the snapshot describes even if path normalization differs
        node = replace(node, path=operation.path)
        if isinstance(operation, (Download, KeepBoth)):
            node = replace(node, version_id=operation.remote.version_id)
        self.snapshot_store.save(node, remote_key=remote_key)
