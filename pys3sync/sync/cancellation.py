"""Cooperative cancellation shared by a sync run and its transfers."""

import threading

from ..exceptions import S3SyncCancelledError


class CancellationToken:
    """A cancellation flag passed explicitly down every call boundary.

    The sync engine polls it once per action; transfers poll it once per
    chunk. Cancelling never interrupts an operation that does not poll.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled
        False
        >>> token.cancel()
        >>> token.is_cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Safe to call from any thread."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise S3SyncCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise S3SyncCancelledError("Operation cancelled")

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if cancellation was requested
        """
        return self._event.wait(timeout)
