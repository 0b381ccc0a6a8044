"""Conflict resolution policies.

A resolver receives a request classified as a conflict and returns the
action to perform instead: skip, upload, download or keep both.
"""

from typing import Callable

from .comparator import SyncActionRequest, SyncActionType

ConflictResolver = Callable[[SyncActionRequest], SyncActionType]

RESOLUTION_ACTIONS = frozenset(
    {
        SyncActionType.SKIP,
        SyncActionType.UPLOAD,
        SyncActionType.DOWNLOAD,
        SyncActionType.KEEP_BOTH,
    }
)


def validate_resolution(action: SyncActionType) -> SyncActionType:
    """Ensure a resolver returned an allowed action.

    Raises:
        ValueError: If ``action`` cannot resolve a conflict
    """
    if action not in RESOLUTION_ACTIONS:
        raise ValueError(f"Conflict cannot be resolved to {action!r}")
    return action


def skip_conflicts(request: SyncActionRequest) -> SyncActionType:
    """Leave conflicts untouched; they reappear on the next run."""
    return SyncActionType.SKIP


def newest_wins(request: SyncActionRequest) -> SyncActionType:
    """Keep whichever side was modified last.

    When one side was deleted, the surviving side wins. Used as the
    default policy for unattended (scheduled) runs.
    """
    local, remote = request.local, request.remote
    if local is None:
        return SyncActionType.DOWNLOAD
    if remote is None:
        return SyncActionType.UPLOAD
    if local.last_modified > remote.last_modified:
        return SyncActionType.UPLOAD
    return SyncActionType.DOWNLOAD


def prefer_local(request: SyncActionRequest) -> SyncActionType:
    """Local wins; a local deletion cannot be uploaded, so the remote is kept."""
    if request.local is None:
        return SyncActionType.DOWNLOAD
    return SyncActionType.UPLOAD


def prefer_remote(request: SyncActionRequest) -> SyncActionType:
    """Remote wins; a remote deletion cannot be downloaded, so the local is kept."""
    if request.remote is None:
        return SyncActionType.UPLOAD
    return SyncActionType.DOWNLOAD


def keep_both(request: SyncActionRequest) -> SyncActionType:
    """Keep a conflict copy of the local file and download the remote one."""
    if request.remote is None:
        return SyncActionType.UPLOAD
    return SyncActionType.KEEP_BOTH


RESOLVERS: dict[str, ConflictResolver] = {
    "skip": skip_conflicts,
    "newest": newest_wins,
    "local": prefer_local,
    "remote": prefer_remote,
    "keep-both": keep_both,
}


def get_resolver(name: str) -> ConflictResolver:
    """Look up a built-in policy by its CLI name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return RESOLVERS[name]
    except KeyError:
        valid = ", ".join(sorted(RESOLVERS))
        raise ValueError(f"Unknown conflict policy {name!r} (valid: {valid})") from None
