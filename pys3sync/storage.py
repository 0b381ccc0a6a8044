"""Remote object storage: the contract used by the sync engine and an S3 client."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Callable, Protocol
from urllib.parse import urlencode

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from .exceptions import (
    S3SyncAPIError,
    S3SyncAuthenticationError,
    S3SyncConfigError,
    S3SyncDownloadError,
    S3SyncError,
    S3SyncFileNotFoundError,
    S3SyncNetworkError,
    S3SyncNotFoundError,
    S3SyncPermissionError,
    S3SyncRateLimitError,
    S3SyncUploadError,
)
from .models import FileNode, IdentityScope, UserRole
from .throttle import ThrottledStream
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_BYTES_PER_SECOND,
    DEFAULT_MAX_CONCURRENT_TRANSFERS,
    format_iso_timestamp,
    parse_iso_timestamp,
    strip_remote_prefix,
    timestamp_to_utc,
    to_utc,
)

if TYPE_CHECKING:
    from .config import Config
    from .sync.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

ROLES_TAG_KEY = "AccessRoles"
MTIME_TAG_KEY = "SourceLastModified"
ROLE_SEPARATOR = ":"

# Files being downloaded are written next to their destination under this suffix
PARTIAL_DOWNLOAD_SUFFIX = ".pys3sync-part"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_PERMISSION_CODES = {"403", "AccessDenied", "AllAccessDisabled"}
_AUTH_CODES = {
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}
_THROTTLE_CODES = {
    "503",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequests",
}


class RemoteStorage(Protocol):
    """Operations the sync engine needs from a remote object store."""

    def list_files(
        self,
        prefix: str,
        scope: IdentityScope,
        cancel_token: CancellationToken | None = None,
    ) -> list[FileNode]:
        """List objects under ``prefix`` visible to ``scope``.

        Node paths are relative to ``prefix``.
        """
        ...

    def upload_file(
        self,
        local_path: Path,
        remote_key: str,
        roles: list[UserRole],
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> bool:
        """Upload ``local_path`` to ``remote_key`` tagged with ``roles``."""
        ...

    def download_file(
        self,
        remote_key: str,
        destination: Path,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Download ``remote_key`` to ``destination``, keeping the remote mtime."""
        ...

    def delete_file(
        self, remote_key: str, cancel_token: CancellationToken | None = None
    ) -> None:
        """Delete ``remote_key``."""
        ...


def encode_roles(roles: list[UserRole]) -> str:
    """Encode roles as an object tag value.

    Examples:
        >>> encode_roles([UserRole.USER, UserRole.EXECUTIVE])
        'User:Executive'
    """
    return ROLE_SEPARATOR.join(role.value for role in roles)


def decode_roles(value: str | None) -> frozenset[UserRole]:
    """Decode an ``AccessRoles`` tag value.

    Untagged objects and unknown role names count as Administrator-only.
    """
    if not value:
        return frozenset({UserRole.ADMINISTRATOR})
    roles = set()
    for name in value.split(ROLE_SEPARATOR):
        try:
            roles.add(UserRole.parse(name))
        except ValueError:
            roles.add(UserRole.ADMINISTRATOR)
    return frozenset(roles)


class S3Storage:
    """Remote storage backed by an S3 (or S3-compatible) bucket.

    Roles are kept in the ``AccessRoles`` object tag and the uploaded
    file's modification time in ``SourceLastModified``, so that a listing
    reports the same timestamp that was recorded when the file was synced.
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        profile: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        max_bytes_per_second: int = DEFAULT_MAX_BYTES_PER_SECOND,
        max_concurrent_transfers: int = DEFAULT_MAX_CONCURRENT_TRANSFERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        max_attempts: int = 5,
        client: Any | None = None,
    ):
        """Initialize the S3 storage client.

        Args:
            bucket: Bucket name
            region: Optional AWS region
            endpoint_url: Optional endpoint for S3-compatible services
            profile: Optional AWS profile name
            access_key: Optional access key (boto3 credential chain otherwise)
            secret_key: Optional secret key
            max_bytes_per_second: Per-transfer bandwidth ceiling (0 = unlimited)
            max_concurrent_transfers: Maximum simultaneous uploads/downloads
            chunk_size: Block size for streamed downloads
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            max_attempts: Attempts per request (botocore standard retry mode)
            client: Pre-built boto3 S3 client (mainly for tests)
        """
        if not bucket:
            raise S3SyncConfigError(
                "Bucket not configured. Please set PYS3SYNC_BUCKET or run "
                "'pys3sync init'."
            )
        if max_concurrent_transfers < 1:
            raise S3SyncConfigError("max_concurrent_transfers must be at least 1")

        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.profile = profile
        self.access_key = access_key
        self.secret_key = secret_key
        self.max_bytes_per_second = max_bytes_per_second
        self.chunk_size = chunk_size
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_attempts = max_attempts
        self._client = client
        self._transfer_slots = threading.BoundedSemaphore(max_concurrent_transfers)

    @classmethod
    def from_config(cls, cfg: Config, **overrides: Any) -> S3Storage:
        """Create a storage client from the application configuration."""
        kwargs: dict[str, Any] = {
            "bucket": cfg.bucket,
            "region": cfg.region,
            "endpoint_url": cfg.endpoint_url,
            "profile": cfg.profile,
            "access_key": cfg.access_key,
            "secret_key": cfg.secret_key,
            "max_bytes_per_second": cfg.max_bytes_per_second,
            "max_concurrent_transfers": cfg.max_concurrent_transfers,
            "chunk_size": cfg.chunk_size,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    def _get_client(self) -> Any:
        """Get or create the boto3 S3 client."""
        if self._client is None:
            session_kwargs: dict[str, Any] = {}
            if self.profile:
                session_kwargs["profile_name"] = self.profile
            if self.region:
                session_kwargs["region_name"] = self.region
            if self.access_key and self.secret_key:
                session_kwargs["aws_access_key_id"] = self.access_key
                session_kwargs["aws_secret_access_key"] = self.secret_key
            session = boto3.session.Session(**session_kwargs)
            self._client = session.client(
                "s3",
                endpoint_url=self.endpoint_url,
                config=BotoConfig(
                    connect_timeout=self.connect_timeout,
                    read_timeout=self.read_timeout,
                    retries={"max_attempts": self.max_attempts, "mode": "standard"},
                ),
            )
        return self._client

    def _translate_error(
        self,
        error: Exception,
        message: str,
        default: type[S3SyncAPIError] = S3SyncAPIError,
    ) -> S3SyncAPIError:
        """Map a botocore exception onto the pys3sync exception hierarchy.

        Args:
            error: Exception raised by boto3/botocore
            message: Context for the error message
            default: Exception class for errors without a specific mapping

        Returns:
            Exception to raise (chained by the caller)
        """
        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return S3SyncAuthenticationError(f"{message}: {error}")
        if isinstance(
            error,
            (
                EndpointConnectionError,
                ConnectionClosedError,
                ConnectTimeoutError,
                ReadTimeoutError,
            ),
        ):
            return S3SyncNetworkError(f"{message}: {error}")
        if isinstance(error, ClientError):
            code = str(error.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return S3SyncNotFoundError(f"{message}: {code}")
            if code in _PERMISSION_CODES:
                return S3SyncPermissionError(f"{message}: access denied")
            if code in _AUTH_CODES:
                return S3SyncAuthenticationError(f"{message}: {code}")
            if code in _THROTTLE_CODES:
                return S3SyncRateLimitError(f"{message}: request throttled")
        return default(f"{message}: {error}")

    def _get_tags(self, key: str) -> dict[str, str]:
        """Read the tag set of an object.

        Missing or unreadable tags are treated as an empty tag set.
        """
        try:
            response = self._get_client().get_object_tagging(
                Bucket=self.bucket, Key=key
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code != "NoSuchTagSet":
                logger.warning(f"Failed to read tags for {key}: {code}")
            return {}
        return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}

    def list_files(
        self,
        prefix: str,
        scope: IdentityScope,
        cancel_token: CancellationToken | None = None,
    ) -> list[FileNode]:
        """List all objects under ``prefix`` that ``scope`` may see.

        Args:
            prefix: Remote prefix ("" for the whole bucket)
            scope: Identity scope used for role filtering
            cancel_token: Optional token checked between pages

        Returns:
            List of FileNode objects with paths relative to ``prefix``
        """
        list_start = time.time()
        list_prefix = prefix.strip("/")
        if list_prefix:
            list_prefix += "/"

        nodes: list[FileNode] = []
        hidden = 0
        try:
            paginator = self._get_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=list_prefix):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                for obj in page.get("Contents", []):
                    node = self._node_from_object(prefix, obj)
                    if scope.can_access(node):
                        nodes.append(node)
                    else:
                        hidden += 1
        except (BotoCoreError, ClientError) as e:
            raise self._translate_error(
                e, f"Failed to list s3://{self.bucket}/{list_prefix}"
            ) from e

        logger.debug(
            f"Listed {len(nodes)} object(s) under s3://{self.bucket}/{list_prefix} "
            f"({hidden} hidden by role) in {time.time() - list_start:.2f}s"
        )
        return nodes

    def _node_from_object(self, prefix: str, obj: dict[str, Any]) -> FileNode:
        key = obj["Key"]
        tags = self._get_tags(key)
        last_modified = parse_iso_timestamp(tags.get(MTIME_TAG_KEY))
        if last_modified is None:
            last_modified = to_utc(obj["LastModified"])
        return FileNode(
            name=PurePosixPath(key).name,
            path=strip_remote_prefix(prefix, key).rstrip("/"),
            is_directory=key.endswith("/"),
            size=int(obj.get("Size", 0)),
            last_modified=last_modified,
            access_roles=decode_roles(tags.get(ROLES_TAG_KEY)),
            remote_key=key,
        )

    def upload_file(
        self,
        local_path: Path,
        remote_key: str,
        roles: list[UserRole],
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> bool:
        """Upload a local file, tagging it with roles and its mtime.

        Args:
            local_path: Local file to upload
            remote_key: Destination object key
            roles: Roles allowed to see the object
            progress_callback: Optional function(bytes_uploaded, total_bytes)
            cancel_token: Optional token checked before every chunk

        Returns:
            True on success

        Raises:
            S3SyncFileNotFoundError: If the local file does not exist
            S3SyncUploadError: If the upload fails
        """
        if not local_path.is_file():
            raise S3SyncFileNotFoundError(str(local_path))

        stat = local_path.stat()
        total = stat.st_size
        tagging = urlencode(
            {
                ROLES_TAG_KEY: encode_roles(roles),
                MTIME_TAG_KEY: format_iso_timestamp(timestamp_to_utc(stat.st_mtime)),
            }
        )
        uploaded = 0

        def _on_bytes(count: int) -> None:
            nonlocal uploaded
            uploaded += count
            if progress_callback:
                progress_callback(uploaded, total)

        with self._transfer_slots:
            upload_start = time.time()
            try:
                with open(local_path, "rb") as fh, ThrottledStream(
                    fh, self.max_bytes_per_second, cancel_token
                ) as stream:
                    self._get_client().upload_fileobj(
                        stream,
                        self.bucket,
                        remote_key,
                        ExtraArgs={"Tagging": tagging},
                        Callback=_on_bytes,
                        Config=TransferConfig(use_threads=False),
                    )
            except S3SyncError:
                raise
            except S3UploadFailedError as e:
                raise S3SyncUploadError(f"Upload of {remote_key} failed: {e}") from e
            except (BotoCoreError, ClientError) as e:
                raise self._translate_error(
                    e, f"Upload of {remote_key} failed", S3SyncUploadError
                ) from e
            except OSError as e:
                raise S3SyncUploadError(f"Failed to read {local_path}: {e}") from e

        logger.debug(
            f"Uploaded {local_path} to s3://{self.bucket}/{remote_key} "
            f"in {time.time() - upload_start:.2f}s"
        )
        return True

    def download_file(
        self,
        remote_key: str,
        destination: Path,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Download an object to ``destination``.

        The body is streamed into a temporary sibling file which replaces
        the destination only once complete. The destination's mtime is set
        to the remote object's modification time.

        Args:
            remote_key: Object key to download
            destination: Local file path to write
            progress_callback: Optional function(bytes_downloaded, total_bytes)
            cancel_token: Optional token checked before every chunk

        Raises:
            S3SyncDownloadError: If the download fails
        """
        client = self._get_client()
        partial = destination.with_name(destination.name + PARTIAL_DOWNLOAD_SUFFIX)

        with self._transfer_slots:
            download_start = time.time()
            try:
                response = client.get_object(Bucket=self.bucket, Key=remote_key)
                last_modified = parse_iso_timestamp(
                    self._get_tags(remote_key).get(MTIME_TAG_KEY)
                ) or to_utc(response["LastModified"])
                total = int(response.get("ContentLength", 0))

                destination.parent.mkdir(parents=True, exist_ok=True)
                downloaded = 0
                with open(partial, "wb") as fh, ThrottledStream(
                    response["Body"], self.max_bytes_per_second, cancel_token
                ) as stream:
                    while True:
                        chunk = stream.read(self.chunk_size)
                        if not chunk:
                            break
                        fh.write(chunk)
                        downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(downloaded, total)

                os.replace(partial, destination)
                mtime = last_modified.timestamp()
                os.utime(destination, (mtime, mtime))
            except S3SyncError:
                raise
            except (BotoCoreError, ClientError) as e:
                raise self._translate_error(
                    e, f"Download of {remote_key} failed", S3SyncDownloadError
                ) from e
            except OSError as e:
                raise S3SyncDownloadError(f"Failed to write {destination}: {e}") from e
            finally:
                if partial.exists():
                    partial.unlink()

        logger.debug(
            f"Downloaded s3://{self.bucket}/{remote_key} to {destination} "
            f"in {time.time() - download_start:.2f}s"
        )

    def delete_file(
        self, remote_key: str, cancel_token: CancellationToken | None = None
    ) -> None:
        """Delete an object.

        Args:
            remote_key: Object key to delete
            cancel_token: Optional token checked before the request
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            self._get_client().delete_object(Bucket=self.bucket, Key=remote_key)
        except (BotoCoreError, ClientError) as e:
            raise self._translate_error(e, f"Delete of {remote_key} failed") from e
        logger.debug(f"Deleted s3://{self.bucket}/{remote_key}")
