"""Utility functions for pys3sync."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants for transfers
# =============================================================================

# Block size for streamed downloads (5 MB)
DEFAULT_CHUNK_SIZE: int = 5 * 1024 * 1024

# Concurrent transfers allowed per storage client
DEFAULT_MAX_CONCURRENT_TRANSFERS: int = 5

# 0 disables bandwidth limiting
DEFAULT_MAX_BYTES_PER_SECOND: int = 0

# Tolerance when comparing modification times (filesystem rounding)
MTIME_TOLERANCE_SECONDS: float = 1.0

CONFLICT_COPY_TIMESTAMP_FORMAT = "%Y-%m-%d %H%M%S"


# =============================================================================
# Timestamp utilities
# =============================================================================


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be in UTC.

    Args:
        value: datetime to normalize

    Returns:
        Timezone-aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def timestamp_to_utc(timestamp: float) -> datetime:
    """Convert a Unix timestamp (e.g. ``st_mtime``) to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def format_iso_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string.

    Examples:
        >>> format_iso_timestamp(datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2025-01-15T10:30:00+00:00'
    """
    return to_utc(value).isoformat()


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00Z")

    Returns:
        datetime in UTC or None if parsing fails
    """
    if not timestamp_str:
        return None

    # The 'Z' suffix indicates UTC time
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        return to_utc(datetime.fromisoformat(timestamp_str))
    except (ValueError, AttributeError):
        return None


def timestamps_differ(
    first: datetime, second: datetime, tolerance: float = MTIME_TOLERANCE_SECONDS
) -> bool:
    """Check whether two timestamps differ by more than ``tolerance`` seconds."""
    return abs((to_utc(first) - to_utc(second)).total_seconds()) > tolerance


# =============================================================================
# Path utilities
# =============================================================================


def join_remote_key(prefix: str, relative_path: str) -> str:
    """Join a remote prefix and a relative path into an object key.

    Examples:
        >>> join_remote_key("team/docs", "a/b.txt")
        'team/docs/a/b.txt'
        >>> join_remote_key("", "b.txt")
        'b.txt'
        >>> join_remote_key("team/", "/b.txt")
        'team/b.txt'
    """
    prefix = prefix.strip("/")
    relative_path = relative_path.lstrip("/")
    if not prefix:
        return relative_path
    return f"{prefix}/{relative_path}"


def strip_remote_prefix(prefix: str, key: str) -> str:
    """Return ``key`` relative to ``prefix`` (the inverse of join_remote_key)."""
    prefix = prefix.strip("/")
    if prefix and key.startswith(prefix + "/"):
        return key[len(prefix) + 1 :]
    return key.lstrip("/")


def conflict_copy_path(path: Path, when: Optional[datetime] = None) -> Path:
    """Build the name used to keep a local file aside during a conflict.

    The suffix is inserted before the extension:
    ``report.txt`` becomes ``report (conflict copy 2025-01-15 103000).txt``.

    Args:
        path: Local file that is about to be replaced
        when: Timestamp to embed (defaults to the current local time)

    Returns:
        Sibling path for the conflict copy
    """
    when = when or datetime.now()
    stamp = when.strftime(CONFLICT_COPY_TIMESTAMP_FORMAT)
    return path.with_name(f"{path.stem} (conflict copy {stamp}){path.suffix}")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
