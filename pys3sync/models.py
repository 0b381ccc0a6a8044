"""Data models shared by the storage client and the sync engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .utils import timestamp_to_utc, to_utc


class UserRole(str, Enum):
    """Roles used to tag remote objects and to scope listings."""

    USER = "User"
    EXECUTIVE = "Executive"
    ADMINISTRATOR = "Administrator"

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """Parse a role name case-insensitively.

        Examples:
            >>> UserRole.parse("executive")
            <UserRole.EXECUTIVE: 'Executive'>

        Raises:
            ValueError: If the name is not a known role
        """
        for role in cls:
            if role.value.lower() == value.strip().lower():
                return role
        raise ValueError(f"Unknown role: {value}")

    def can_see(self, tagged_roles: Iterable["UserRole"]) -> bool:
        """Check whether this role may see an object tagged with ``tagged_roles``."""
        tagged = set(tagged_roles)
        if self is UserRole.ADMINISTRATOR:
            return True
        if self is UserRole.EXECUTIVE:
            return bool(tagged & {UserRole.EXECUTIVE, UserRole.ADMINISTRATOR})
        return UserRole.USER in tagged


@dataclass(frozen=True)
class IdentityScope:
    """Effective roles of the caller.

    Filters which remote objects are visible during listing and supplies
    the role tags attached to uploads.
    """

    roles: frozenset[UserRole]
    """Roles granted to the caller"""

    username: str = ""
    """Display name for logging"""

    @classmethod
    def for_role(cls, role: UserRole, username: str = "") -> "IdentityScope":
        """Create a scope holding a single role."""
        return cls(roles=frozenset({role}), username=username)

    def can_access(self, node: "FileNode") -> bool:
        """Check whether any role in this scope may see ``node``."""
        return any(role.can_see(node.access_roles) for role in self.roles)

    @property
    def tag_roles(self) -> list[UserRole]:
        """Roles to tag uploads with, in a stable order."""
        return sorted(self.roles, key=lambda role: role.value)


@dataclass(frozen=True)
class FileNode:
    """A file or directory from the local tree or the remote namespace."""

    name: str
    """Leaf display name"""

    path: str
    """Slash-separated path relative to the sync root"""

    is_directory: bool
    """Whether this node is a directory (or remote folder marker)"""

    size: int
    """Size in bytes (0 for directories)"""

    last_modified: datetime
    """Last modification time (aware, UTC)"""

    access_roles: frozenset[UserRole] = field(default_factory=frozenset)
    """Roles permitted to see the remote object (remote only)"""

    remote_key: str = ""
    """Full object key including the remote prefix (remote only)"""

    version_id: str = ""
    """Object version identifier, if the bucket is versioned (remote only)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "FileNode":
        """Create a FileNode from a local file.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            FileNode instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        is_dir = file_path.is_dir()
        return cls(
            name=file_path.name,
            path=relative_path,
            is_directory=is_dir,
            size=0 if is_dir else stat.st_size,
            last_modified=timestamp_to_utc(stat.st_mtime),
        )


@dataclass(frozen=True)
class SnapshotEntry:
    """State of a path at the end of its last successful sync."""

    path: str
    size: int
    last_modified: datetime
    remote_key: str = ""
    version_id: str = ""

    @classmethod
    def from_node(
        cls, node: FileNode, remote_key: Optional[str] = None
    ) -> "SnapshotEntry":
        """Build a snapshot entry from a file node."""
        return cls(
            path=node.path,
            size=node.size,
            last_modified=to_utc(node.last_modified),
            remote_key=node.remote_key if remote_key is None else remote_key,
            version_id=node.version_id,
        )
