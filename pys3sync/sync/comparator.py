"""Three-way comparison of local, remote and snapshot state."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..models import FileNode, SnapshotEntry
from ..utils import timestamps_differ

FileState = Union[FileNode, SnapshotEntry]


class SyncActionType(str, Enum):
    """Actions that can be taken during sync."""

    SKIP = "skip"
    """Skip file (no action needed)"""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file"""

    DELETE_REMOTE = "delete_remote"
    """Delete remote file"""

    CONFLICT = "conflict"
    """Changed on both sides; must be resolved before execution"""

    KEEP_BOTH = "keep_both"
    """Keep the local file as a conflict copy and download the remote one"""

    PURGE_SNAPSHOT = "purge_snapshot"
    """Gone from both sides; only the snapshot entry is removed"""


@dataclass
class SyncActionRequest:
    """A classified path, handed from the reconciler to the executor.

    Only ``action`` changes after classification, when a conflict is
    resolved.
    """

    path: str
    """Relative path of the file"""

    action: SyncActionType
    """Action to take"""

    local: Optional[FileNode] = None
    """Local file as scanned (if it exists)"""

    remote: Optional[FileNode] = None
    """Remote file as listed (if it exists)"""

    reason: str = ""
    """Human-readable reason for this decision"""


def is_changed(current: Optional[FileState], snapshot: Optional[SnapshotEntry]) -> bool:
    """Check whether a file differs from its last synced state.

    Args:
        current: Current local or remote state (None if absent)
        snapshot: Snapshot entry (None if never synced)

    Returns:
        True if exactly one is absent, or sizes differ, or the timestamps
        differ by more than one second
    """
    if current is None and snapshot is None:
        return False
    if current is None or snapshot is None:
        return True
    return current.size != snapshot.size or timestamps_differ(
        current.last_modified, snapshot.last_modified
    )


class Reconciler:
    """Classifies every known path into a sync action."""

    def reconcile(
        self,
        local_files: dict[str, FileNode],
        remote_files: dict[str, FileNode],
        snapshots: dict[str, SnapshotEntry],
    ) -> list[SyncActionRequest]:
        """Classify the union of local, remote and snapshot paths.

        Args:
            local_files: Dictionary mapping relative path to local FileNode
            remote_files: Dictionary mapping relative path to remote FileNode
            snapshots: Dictionary mapping relative path to SnapshotEntry

        Returns:
            One SyncActionRequest per path, in lexicographic path order
        """
        all_paths = set(local_files) | set(remote_files) | set(snapshots)

        requests: list[SyncActionRequest] = []
        for path in sorted(all_paths):
            local = local_files.get(path)
            remote = remote_files.get(path)
            action, reason = self._classify(local, remote, snapshots.get(path))
            requests.append(
                SyncActionRequest(
                    path=path,
                    action=action,
                    local=local,
                    remote=remote,
                    reason=reason,
                )
            )
        return requests

    def classify(
        self,
        local: Optional[FileNode],
        remote: Optional[FileNode],
        snapshot: Optional[SnapshotEntry],
    ) -> SyncActionType:
        """Classify a single path."""
        return self._classify(local, remote, snapshot)[0]

    def _classify(
        self,
        local: Optional[FileNode],
        remote: Optional[FileNode],
        snapshot: Optional[SnapshotEntry],
    ) -> tuple[SyncActionType, str]:
        local_changed = is_changed(local, snapshot)
        remote_changed = is_changed(remote, snapshot)

        if not local_changed and not remote_changed:
            return SyncActionType.SKIP, "Unchanged since last sync"

        if local is None and remote is None and snapshot is not None:
            return SyncActionType.PURGE_SNAPSHOT, "Deleted on both sides"

        if local_changed and not remote_changed:
            if local is None:
                return SyncActionType.DELETE_REMOTE, "File deleted locally"
            if snapshot is None:
                return SyncActionType.UPLOAD, "New local file"
            return SyncActionType.UPLOAD, "Local file changed"

        if remote_changed and not local_changed:
            if remote is None:
                return SyncActionType.DELETE_LOCAL, "File deleted remotely"
            if snapshot is None:
                return SyncActionType.DOWNLOAD, "New remote file"
            return SyncActionType.DOWNLOAD, "Remote file changed"

        if snapshot is None:
            return SyncActionType.CONFLICT, "Created on both sides"
        if local is None:
            return SyncActionType.CONFLICT, "Deleted locally but changed remotely"
        if remote is None:
            return SyncActionType.CONFLICT, "Changed locally but deleted remotely"
        return SyncActionType.CONFLICT, (
            f"Changed on both sides (local {local.size} bytes, "
            f"remote {remote.size} bytes)"
        )
