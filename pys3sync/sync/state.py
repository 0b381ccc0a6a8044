"""Snapshot persistence for three-way change detection.

The snapshot records, per path, the size and modification time observed at
the end of its last successful sync. It is the common ancestor the
reconciler compares the local and remote sides against.
"""

import hashlib
import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol

from ..exceptions import S3SyncStateError
from ..models import FileNode, SnapshotEntry
from ..utils import format_iso_timestamp, parse_iso_timestamp

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sync_snapshot (
    path TEXT PRIMARY KEY,
    size INTEGER NOT NULL,
    last_modified TEXT NOT NULL,
    remote_key TEXT NOT NULL DEFAULT '',
    version_id TEXT NOT NULL DEFAULT ''
);
"""


class SnapshotStore(Protocol):
    """Keyed storage of last-synced file states."""

    def save(self, node: FileNode, remote_key: str = "") -> None: ...

    def delete(self, path: str) -> None: ...

    def list_all(self) -> list[SnapshotEntry]: ...

    def clear(self) -> None: ...


class SqliteSnapshotStore:
    """Snapshot store kept in a SQLite database, one row per path."""

    def __init__(self, db_path: Path):
        """Initialize the store, creating the database if needed.

        Args:
            db_path: Path of the SQLite database file
        """
        self.db_path = db_path
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise S3SyncStateError(
                f"Cannot create state directory {db_path.parent}: {e}"
            ) from e
        self._execute(SCHEMA_SQL)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> None:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise S3SyncStateError(
                f"Cannot open snapshot database {self.db_path}: {e}"
            ) from e
        try:
            with conn:
                conn.execute(sql, params)
        except sqlite3.Error as e:
            raise S3SyncStateError(f"Snapshot database error: {e}") from e
        finally:
            conn.close()

    def save(self, node: FileNode, remote_key: str = "") -> None:
        """Insert or replace the snapshot entry for ``node.path``."""
        entry = SnapshotEntry.from_node(node, remote_key=remote_key or None)
        self._execute(
            """
            INSERT OR REPLACE INTO sync_snapshot
                (path, size, last_modified, remote_key, version_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                entry.path,
                entry.size,
                format_iso_timestamp(entry.last_modified),
                entry.remote_key,
                entry.version_id,
            ),
        )
        logger.debug(f"Saved snapshot for {entry.path}")

    def delete(self, path: str) -> None:
        """Remove the snapshot entry for ``path`` (no-op if absent)."""
        self._execute("DELETE FROM sync_snapshot WHERE path = ?", (path,))
        logger.debug(f"Removed snapshot for {path}")

    def list_all(self) -> list[SnapshotEntry]:
        """Return every snapshot entry, ordered by path."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise S3SyncStateError(
                f"Cannot open snapshot database {self.db_path}: {e}"
            ) from e
        try:
            rows = conn.execute(
                "SELECT path, size, last_modified, remote_key, version_id "
                "FROM sync_snapshot ORDER BY path"
            ).fetchall()
        except sqlite3.Error as e:
            raise S3SyncStateError(f"Snapshot database error: {e}") from e
        finally:
            conn.close()

        entries: list[SnapshotEntry] = []
        for row in rows:
            last_modified = parse_iso_timestamp(row["last_modified"])
            if last_modified is None:
                # An unreadable timestamp can only compare as "changed"
                logger.warning(
                    f"Discarding snapshot for {row['path']}: "
                    f"bad timestamp {row['last_modified']!r}"
                )
                continue
            entries.append(
                SnapshotEntry(
                    path=row["path"],
                    size=int(row["size"]),
                    last_modified=last_modified,
                    remote_key=row["remote_key"],
                    version_id=row["version_id"],
                )
            )
        return entries

    def clear(self) -> None:
        """Remove every snapshot entry."""
        self._execute("DELETE FROM sync_snapshot")


class SnapshotStateManager:
    """Maps sync pairs to their snapshot databases.

    Each (local directory, remote prefix) pair gets its own database in
    the state directory, keyed by a hash of both paths.
    """

    def __init__(self, state_dir: Optional[Path] = None):
        """Initialize state manager.

        Args:
            state_dir: Directory to store snapshot databases. Defaults to
                      ~/.config/pys3sync/sync_state/
        """
        if state_dir is None:
            state_dir = Path.home() / ".config" / "pys3sync" / "sync_state"
        self.state_dir = state_dir

    def _get_state_key(self, local_path: Path, remote_prefix: str) -> str:
        """Generate a unique key for a sync pair.

        Args:
            local_path: Local directory path
            remote_prefix: Remote prefix

        Returns:
            Hash-based key for the sync pair
        """
        # Use absolute path for consistency
        local_abs = str(local_path.resolve())
        combined = f"{local_abs}:{remote_prefix.strip('/')}"
        return hashlib.sha256(combined.encode()).hexdigest()[:16]

    def get_db_path(self, local_path: Path, remote_prefix: str) -> Path:
        key = self._get_state_key(local_path, remote_prefix)
        return self.state_dir / f"{key}.db"

    def open_store(self, local_path: Path, remote_prefix: str) -> SqliteSnapshotStore:
        """Open (creating if needed) the snapshot store for a sync pair."""
        return SqliteSnapshotStore(self.get_db_path(local_path, remote_prefix))

    def clear_state(self, local_path: Path, remote_prefix: str) -> bool:
        """Forget the snapshot of a sync pair.

        Args:
            local_path: Local directory path
            remote_prefix: Remote prefix

        Returns:
            True if state was cleared, False if no state existed
        """
        db_path = self.get_db_path(local_path, remote_prefix)

        if db_path.exists():
            db_path.unlink()
            logger.debug(f"Cleared sync state at {db_path}")
            return True
        return False
