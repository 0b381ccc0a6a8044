"""Exception hierarchy for pys3sync."""


class S3SyncError(Exception):
    """Base exception for all pys3sync errors."""


class S3SyncConfigError(S3SyncError):
    """Configuration is missing or invalid."""


class S3SyncScanError(S3SyncError):
    """The local directory tree could not be enumerated."""


class S3SyncStateError(S3SyncError):
    """The snapshot store could not be read or written."""


class S3SyncCancelledError(S3SyncError):
    """The operation was cancelled through its cancellation token."""


class S3SyncAPIError(S3SyncError):
    """A request against the remote object storage failed."""


class S3SyncAuthenticationError(S3SyncAPIError):
    """Credentials are missing, invalid or expired."""


class S3SyncPermissionError(S3SyncAPIError):
    """Access to the bucket or object was denied."""


class S3SyncNotFoundError(S3SyncAPIError):
    """The bucket or object does not exist."""


class S3SyncRateLimitError(S3SyncAPIError):
    """The storage service throttled the request."""


class S3SyncNetworkError(S3SyncAPIError):
    """The storage service could not be reached."""


class S3SyncUploadError(S3SyncAPIError):
    """Uploading an object failed."""


class S3SyncDownloadError(S3SyncAPIError):
    """Downloading an object failed."""


class S3SyncFileNotFoundError(S3SyncError):
    """A local file to be uploaded does not exist."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"Local file not found: {file_path}")
