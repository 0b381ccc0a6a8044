"""pys3sync - Two-way sync between a local folder and an S3 bucket."""

from .exceptions import (
    S3SyncAPIError,
    S3SyncAuthenticationError,
    S3SyncCancelledError,
    S3SyncConfigError,
    S3SyncDownloadError,
    S3SyncError,
    S3SyncFileNotFoundError,
    S3SyncNetworkError,
    S3SyncNotFoundError,
    S3SyncPermissionError,
    S3SyncRateLimitError,
    S3SyncScanError,
    S3SyncStateError,
    S3SyncUploadError,
)
from .models import FileNode, IdentityScope, SnapshotEntry, UserRole
from .storage import RemoteStorage, S3Storage
from .throttle import ThrottledStream

__version__ = "0.1.0"

__all__ = [
    "S3Storage",
    "RemoteStorage",
    "ThrottledStream",
    "FileNode",
    "IdentityScope",
    "SnapshotEntry",
    "UserRole",
    "S3SyncError",
    "S3SyncAPIError",
    "S3SyncAuthenticationError",
    "S3SyncCancelledError",
    "S3SyncConfigError",
    "S3SyncDownloadError",
    "S3SyncFileNotFoundError",
    "S3SyncNetworkError",
    "S3SyncNotFoundError",
    "S3SyncPermissionError",
    "S3SyncRateLimitError",
    "S3SyncScanError",
    "S3SyncStateError",
    "S3SyncUploadError",
]
