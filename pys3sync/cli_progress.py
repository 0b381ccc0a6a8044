"""CLI progress display for sync operations.

This module provides a Rich-based progress display fed by the
SyncProgress events emitted by the sync engine.
"""

from typing import Any, Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.engine import SyncEngine
from .sync.progress import STATUS_COMPLETE, SyncProgress


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    Shows the current status line together with the number of processed
    actions out of the actions planned for the run.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.last_event: Optional[SyncProgress] = None

    def handle(self, event: SyncProgress) -> None:
        """Update the display from an engine event.

        Args:
            event: Progress event
        """
        self.last_event = event
        if self._progress is None or self._task is None:
            return

        # Scanning events carry no totals yet
        total = event.total_items if event.total_items > 0 else None
        if event.status == STATUS_COMPLETE:
            total = event.total_items
        self._progress.update(
            self._task,
            description=event.status,
            total=total,
            completed=event.processed_items,
        )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing sync...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_sync_with_progress(engine: SyncEngine, **sync_kwargs: Any) -> dict:
    """Run a sync with a Rich progress display.

    Dry runs print no progress bar, only the plan.

    Args:
        engine: SyncEngine instance
        **sync_kwargs: Arguments forwarded to ``SyncEngine.sync``

    Returns:
        Dictionary with sync statistics
    """
    if sync_kwargs.get("dry_run"):
        return engine.sync(**sync_kwargs)

    with SyncProgressDisplay() as display:
        return engine.sync(progress=display.handle, **sync_kwargs)
