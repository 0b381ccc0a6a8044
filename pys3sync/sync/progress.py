"""Progress reporting for sync runs."""

from dataclasses import dataclass
from typing import Callable

STATUS_SCANNING_LOCAL = "Scanning local files..."
STATUS_SCANNING_REMOTE = "Scanning remote files..."
STATUS_COMPLETE = "Sync complete"


@dataclass(frozen=True)
class SyncProgress:
    """A progress event emitted by the sync engine."""

    status: str
    """Human-readable status line"""

    total_items: int
    """Number of actions planned for this run"""

    processed_items: int
    """Number of actions processed so far"""

    @property
    def percent_complete(self) -> float:
        """Percentage of processed items (0 when nothing is planned)."""
        if self.total_items > 0:
            return self.processed_items / self.total_items * 100
        return 0.0


ProgressSink = Callable[[SyncProgress], None]


def syncing_status(path: str) -> str:
    return f"Syncing {path}..."
