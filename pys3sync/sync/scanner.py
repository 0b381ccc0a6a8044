"""Directory scanning utilities for sync operations."""

import fnmatch
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import S3SyncScanError
from ..models import FileNode
from ..storage import PARTIAL_DOWNLOAD_SUFFIX

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Scans directories and builds file lists.

    Ignore and include patterns are shell-style globs matched against both
    the slash-separated relative path and the bare file name, so ``*.tmp``
    excludes temporary files anywhere and ``build/*`` excludes a folder.
    When include patterns are given, only files matching one of them are
    kept; ignore patterns still win over includes.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/sync/folder"))

        >>> # With CLI patterns
        >>> scanner = DirectoryScanner(
        ...     ignore_patterns=["*.tmp", "cache/*"], include_patterns=["docs/*"]
        ... )
        >>> files = scanner.scan_local(Path("/sync/folder"))
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
        include_patterns: Optional[list[str]] = None,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: List of glob patterns to ignore (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
            include_patterns: Glob patterns a file must match to be synced
                (e.g., ["*.pdf", "reports/*"]); empty means every file
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files
        self.include_patterns = include_patterns or []

    @staticmethod
    def _matches(relative_path: str, name: str, pattern: str) -> bool:
        return fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
            name, pattern
        )

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        """Check if a relative path should be ignored.

        Args:
            relative_path: Slash-separated path relative to the sync root
            is_dir: Whether the path is a directory

        Returns:
            True if path should be ignored
        """
        name = relative_path.rsplit("/", 1)[-1]

        # In-flight downloads are never synced
        if not is_dir and name.endswith(PARTIAL_DOWNLOAD_SUFFIX):
            return True

        if self.exclude_dot_files and any(
            part.startswith(".") for part in relative_path.split("/")
        ):
            return True

        for pattern in self.ignore_patterns:
            pattern = pattern.rstrip("/")
            if self._matches(relative_path, name, pattern):
                logger.debug(f"Ignoring (pattern {pattern!r}): {relative_path}")
                return True
            # A directory pattern also hides everything beneath it
            if fnmatch.fnmatch(relative_path, f"{pattern}/*"):
                return True

        # Includes select files; directories are always descended into
        if self.include_patterns and not is_dir:
            for pattern in self.include_patterns:
                pattern = pattern.rstrip("/")
                if self._matches(relative_path, name, pattern) or fnmatch.fnmatch(
                    relative_path, f"{pattern}/*"
                ):
                    break
            else:
                logger.debug(f"Not included: {relative_path}")
                return True

        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[FileNode]:
        """Recursively scan a local directory.

        Unlike a best-effort listing, any directory that cannot be read
        aborts the scan: a silently missing subtree would be reconciled as
        a set of local deletions.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of FileNode objects for regular files

        Raises:
            S3SyncScanError: If a directory cannot be enumerated
        """
        if base_path is None:
            base_path = directory
            if not directory.is_dir():
                raise S3SyncScanError(f"Not a directory: {directory}")

        files: list[FileNode] = []

        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            raise S3SyncScanError(f"Cannot read directory {directory}: {e}") from e

        for item in entries:
            is_dir = item.is_dir()
            relative_path = item.relative_to(base_path).as_posix()
            if self.is_ignored(relative_path, is_dir=is_dir):
                continue

            if item.is_symlink() and is_dir:
                # Do not follow directory links out of the tree
                logger.debug(f"Skipping directory symlink: {relative_path}")
                continue

            if is_dir:
                files.extend(self.scan_local(item, base_path))
            elif item.is_file():
                try:
                    files.append(FileNode.from_path(item, base_path))
                except FileNotFoundError:
                    # Removed between listing and stat
                    continue
                except OSError as e:
                    raise S3SyncScanError(f"Cannot stat {item}: {e}") from e

        return files

    def filter_nodes(self, nodes: Iterable[FileNode]) -> list[FileNode]:
        """Drop directory nodes and nodes matching the ignore rules.

        Used on remote listings so that excluded paths are treated the
        same way on both sides.
        """
        return [
            node
            for node in nodes
            if not node.is_directory and not self.is_ignored(node.path)
        ]
