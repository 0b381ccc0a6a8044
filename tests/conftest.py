"""Shared fixtures for pys3sync tests."""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from pys3sync.exceptions import S3SyncNotFoundError, S3SyncUploadError
from pys3sync.models import FileNode, IdentityScope, UserRole
from pys3sync.sync.state import SqliteSnapshotStore
from pys3sync.utils import join_remote_key, strip_remote_prefix, timestamp_to_utc


class InMemoryStorage:
    """RemoteStorage double keeping objects in a dict.

    Uploads record the local file's mtime as the object's timestamp, the
    same way S3Storage does through the SourceLastModified tag.
    """

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: dict[str, dict] = {}
        self.fail_keys: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return f"v{self._version}"

    def put(
        self,
        key: str,
        data: bytes,
        last_modified: Optional[datetime] = None,
        roles: tuple = (UserRole.USER,),
    ) -> None:
        """Create or replace an object directly (a change made by another client)."""
        self.objects[key] = {
            "data": data,
            "last_modified": last_modified or datetime.now(timezone.utc),
            "roles": frozenset(roles),
            "version_id": self._next_version(),
        }

    def list_files(self, prefix, scope, cancel_token=None):
        nodes = []
        for key in sorted(self.objects):
            if prefix and not key.startswith(prefix.strip("/") + "/"):
                continue
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            obj = self.objects[key]
            path = strip_remote_prefix(prefix, key)
            node = FileNode(
                name=path.rsplit("/", 1)[-1],
                path=path,
                is_directory=key.endswith("/"),
                size=len(obj["data"]),
                last_modified=obj["last_modified"],
                access_roles=obj["roles"],
                remote_key=key,
                version_id=obj["version_id"],
            )
            if scope.can_access(node):
                nodes.append(node)
        return nodes

    def upload_file(
        self, local_path, remote_key, roles, progress_callback=None, cancel_token=None
    ):
        self.calls.append(("upload", remote_key))
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if remote_key in self.fail_keys:
            raise S3SyncUploadError(f"Upload failed: {remote_key}")
        data = Path(local_path).read_bytes()
        self.put(
            remote_key,
            data,
            last_modified=timestamp_to_utc(Path(local_path).stat().st_mtime),
            roles=tuple(roles),
        )
        if progress_callback:
            progress_callback(len(data), len(data))
        return True

    def download_file(
        self, remote_key, destination, progress_callback=None, cancel_token=None
    ):
        self.calls.append(("download", remote_key))
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if remote_key not in self.objects:
            raise S3SyncNotFoundError(f"No such key: {remote_key}")
        obj = self.objects[remote_key]
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(obj["data"])
        mtime = obj["last_modified"].timestamp()
        os.utime(destination, (mtime, mtime))

    def delete_file(self, remote_key, cancel_token=None):
        self.calls.append(("delete", remote_key))
        self.objects.pop(remote_key, None)

    def data(self, prefix: str, path: str) -> bytes:
        return self.objects[join_remote_key(prefix, path)]["data"]


def write_file(path: Path, content: str, mtime: Optional[float] = None) -> Path:
    """Write a text file, optionally setting its modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_root(temp_dir):
    """Local sync root inside the temporary directory."""
    root = temp_dir / "local"
    root.mkdir()
    return root


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def snapshot_store(temp_dir):
    return SqliteSnapshotStore(temp_dir / "state" / "snapshot.db")


@pytest.fixture
def user_scope():
    return IdentityScope.for_role(UserRole.USER, username="alice")
