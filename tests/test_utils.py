"""Unit tests for utility functions and shared models."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from pys3sync.models import FileNode, IdentityScope, SnapshotEntry, UserRole
from pys3sync.utils import (
    conflict_copy_path,
    format_iso_timestamp,
    format_size,
    join_remote_key,
    parse_iso_timestamp,
    strip_remote_prefix,
    timestamps_differ,
    to_utc,
)

from .conftest import write_file


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_to_utc_assumes_naive_is_utc(self):
        assert to_utc(datetime(2025, 1, 1, 12)) == datetime(
            2025, 1, 1, 12, tzinfo=timezone.utc
        )

    def test_to_utc_converts_offsets(self):
        cet = timezone(timedelta(hours=1))
        assert to_utc(datetime(2025, 1, 1, 13, tzinfo=cet)).hour == 12

    def test_parse_z_suffix(self):
        """Test parsing timestamps with the Z suffix."""
        assert parse_iso_timestamp("2025-01-15T10:30:00Z") == datetime(
            2025, 1, 15, 10, 30, tzinfo=timezone.utc
        )

    def test_parse_round_trips_format(self):
        value = datetime(2025, 1, 15, 10, 30, 1, 500, tzinfo=timezone.utc)
        assert parse_iso_timestamp(format_iso_timestamp(value)) == value

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_invalid(self, value):
        assert parse_iso_timestamp(value) is None

    def test_timestamps_differ_tolerance(self):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert not timestamps_differ(base, base + timedelta(seconds=1))
        assert timestamps_differ(base, base + timedelta(seconds=1.5))
        assert timestamps_differ(base + timedelta(seconds=1.5), base)


class TestRemoteKeys:
    """Tests for joining and stripping remote prefixes."""

    @pytest.mark.parametrize(
        "prefix,path,expected",
        [
            ("team/docs", "a/b.txt", "team/docs/a/b.txt"),
            ("", "b.txt", "b.txt"),
            ("team/", "/b.txt", "team/b.txt"),
            ("/team/", "b.txt", "team/b.txt"),
        ],
    )
    def test_join(self, prefix, path, expected):
        assert join_remote_key(prefix, path) == expected

    def test_strip(self):
        assert strip_remote_prefix("team/docs", "team/docs/a/b.txt") == "a/b.txt"
        assert strip_remote_prefix("", "a.txt") == "a.txt"
        assert strip_remote_prefix("team", "teammate/a.txt") == "teammate/a.txt"


class TestConflictCopyPath:
    """Tests for conflict copy naming."""

    def test_suffix_before_extension(self):
        when = datetime(2025, 1, 15, 10, 30, 0)
        assert conflict_copy_path(Path("/x/report.txt"), when) == Path(
            "/x/report (conflict copy 2025-01-15 103000).txt"
        )

    def test_no_extension(self):
        when = datetime(2025, 1, 15, 10, 30, 5)
        assert conflict_copy_path(Path("Makefile"), when).name == (
            "Makefile (conflict copy 2025-01-15 103005)"
        )

    def test_defaults_to_now(self):
        name = conflict_copy_path(Path("a.txt")).name
        assert name.startswith(f"a (conflict copy {datetime.now():%Y-%m-%d}")


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (1023, "1023 B"), (1536, "1.5 KB"), (5 * 1024**2, "5.0 MB")],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected

    def test_gigabytes(self):
        assert format_size(3 * 1024**3) == "3.0 GB"


class TestUserRole:
    """Tests for role parsing and visibility."""

    def test_parse(self):
        assert UserRole.parse(" executive ") == UserRole.EXECUTIVE

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown role"):
            UserRole.parse("Guest")

    @pytest.mark.parametrize(
        "role,tags,visible",
        [
            (UserRole.ADMINISTRATOR, set(), True),
            (UserRole.EXECUTIVE, {UserRole.ADMINISTRATOR}, True),
            (UserRole.EXECUTIVE, {UserRole.EXECUTIVE}, True),
            (UserRole.EXECUTIVE, {UserRole.USER}, False),
            (UserRole.USER, {UserRole.USER, UserRole.EXECUTIVE}, True),
            (UserRole.USER, {UserRole.ADMINISTRATOR}, False),
        ],
    )
    def test_can_see(self, role, tags, visible):
        assert role.can_see(tags) is visible


class TestModels:
    """Tests for FileNode, SnapshotEntry and IdentityScope."""

    def test_file_node_from_path(self, temp_dir):
        path = write_file(temp_dir / "docs" / "a.txt", "hello", mtime=1_700_000_000)

        node = FileNode.from_path(path, temp_dir)

        assert node.name == "a.txt"
        assert node.path == "docs/a.txt"
        assert node.size == 5
        assert node.is_directory is False
        assert node.last_modified.tzinfo is not None

    def test_snapshot_entry_from_node(self):
        node = FileNode(
            "a.txt",
            "a.txt",
            False,
            5,
            datetime(2025, 1, 1),
            remote_key="team/a.txt",
            version_id="v1",
        )
        entry = SnapshotEntry.from_node(node)
        assert entry.remote_key == "team/a.txt"
        assert entry.version_id == "v1"
        assert entry.last_modified.tzinfo == timezone.utc
        assert SnapshotEntry.from_node(node, remote_key="other").remote_key == "other"

    def test_scope_tag_roles_are_sorted(self):
        scope = IdentityScope(frozenset({UserRole.USER, UserRole.ADMINISTRATOR}))
        assert scope.tag_roles == [UserRole.ADMINISTRATOR, UserRole.USER]

    def test_scope_with_several_roles(self):
        scope = IdentityScope(frozenset({UserRole.USER, UserRole.EXECUTIVE}))
        node = FileNode(
            "a",
            "a",
            False,
            1,
            datetime.now(timezone.utc),
            access_roles=frozenset({UserRole.ADMINISTRATOR}),
        )
        assert scope.can_access(node)
