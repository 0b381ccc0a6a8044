"""Tests for snapshot persistence."""

import sqlite3
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from pys3sync.exceptions import S3SyncStateError
from pys3sync.models import FileNode
from pys3sync.sync.state import SnapshotStateManager, SqliteSnapshotStore

T = datetime(2025, 1, 15, 10, 30, 15, 250000, tzinfo=timezone.utc)


def node(path: str, size: int = 10, version_id: str = "") -> FileNode:
    return FileNode(
        name=path.rsplit("/", 1)[-1],
        path=path,
        is_directory=False,
        size=size,
        last_modified=T,
        version_id=version_id,
    )


class TestSqliteSnapshotStore:
    """Tests for the SQLite snapshot store."""

    def test_creates_database(self, temp_dir):
        db_path = temp_dir / "nested" / "state.db"
        SqliteSnapshotStore(db_path)
        assert db_path.exists()

    def test_save_and_list(self, snapshot_store):
        snapshot_store.save(node("b.txt", version_id="v1"), remote_key="team/b.txt")
        snapshot_store.save(node("a.txt", size=20))

        entries = snapshot_store.list_all()

        assert [e.path for e in entries] == ["a.txt", "b.txt"]
        assert entries[0].size == 20
        assert entries[0].remote_key == ""
        assert entries[1].remote_key == "team/b.txt"
        assert entries[1].version_id == "v1"
        assert entries[1].last_modified == T

    def test_save_replaces_existing_entry(self, snapshot_store):
        snapshot_store.save(node("a.txt", size=10))
        snapshot_store.save(node("a.txt", size=99))

        (entry,) = snapshot_store.list_all()
        assert entry.size == 99

    def test_delete(self, snapshot_store):
        snapshot_store.save(node("a.txt"))
        snapshot_store.save(node("b.txt"))

        snapshot_store.delete("a.txt")
        snapshot_store.delete("missing.txt")

        assert [e.path for e in snapshot_store.list_all()] == ["b.txt"]

    def test_clear(self, snapshot_store):
        snapshot_store.save(node("a.txt"))
        snapshot_store.clear()
        assert snapshot_store.list_all() == []

    def test_persists_across_instances(self, temp_dir):
        db_path = temp_dir / "state.db"
        SqliteSnapshotStore(db_path).save(node("docs/a.txt"))

        entries = SqliteSnapshotStore(db_path).list_all()

        assert [e.path for e in entries] == ["docs/a.txt"]
        assert entries[0].last_modified == T

    def test_bad_timestamp_is_discarded(self, temp_dir):
        db_path = temp_dir / "state.db"
        store = SqliteSnapshotStore(db_path)
        store.save(node("good.txt"))
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "INSERT INTO sync_snapshot (path, size, last_modified) "
                "VALUES ('bad.txt', 1, 'not a date')"
            )
        conn.close()

        assert [e.path for e in store.list_all()] == ["good.txt"]

    def test_unusable_database_raises_state_error(self, temp_dir):
        db_path = temp_dir / "state.db"
        db_path.write_text("this is not a database")

        with pytest.raises(S3SyncStateError):
            SqliteSnapshotStore(db_path)

    def test_list_all_translates_open_errors(self, snapshot_store):
        with patch(
            "pys3sync.sync.state.sqlite3.connect",
            side_effect=sqlite3.OperationalError("unable to open database file"),
        ):
            with pytest.raises(S3SyncStateError, match="Cannot open snapshot database"):
                snapshot_store.list_all()


class TestSnapshotStateManager:
    """Tests for mapping sync pairs to databases."""

    def test_db_path_is_stable(self, temp_dir):
        manager = SnapshotStateManager(temp_dir)
        local = temp_dir / "local"

        assert manager.get_db_path(local, "team/docs") == manager.get_db_path(
            local, "/team/docs/"
        )
        assert manager.get_db_path(local, "team/docs").parent == temp_dir

    def test_different_pairs_get_different_databases(self, temp_dir):
        manager = SnapshotStateManager(temp_dir)
        local = temp_dir / "local"

        assert manager.get_db_path(local, "a") != manager.get_db_path(local, "b")
        assert manager.get_db_path(local, "a") != manager.get_db_path(
            temp_dir / "other", "a"
        )

    def test_open_store_and_clear_state(self, temp_dir):
        manager = SnapshotStateManager(temp_dir / "state")
        local = temp_dir / "local"

        manager.open_store(local, "team").save(node("a.txt"))
        assert manager.open_store(local, "team").list_all() != []

        assert manager.clear_state(local, "team") is True
        assert manager.clear_state(local, "team") is False
        assert manager.open_store(local, "team").list_all() == []

    def test_default_state_dir(self):
        manager = SnapshotStateManager()
        assert manager.state_dir.parts[-3:] == (".config", "pys3sync", "sync_state")
