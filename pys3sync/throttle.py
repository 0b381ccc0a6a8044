"""Bandwidth limiting for transfer streams."""

import logging
import time
from typing import IO, TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .sync.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class ThrottledStream:
    """File-like wrapper that caps the transfer rate of a single stream.

    The stream tracks the bytes moved since it was created. Before each
    chunk of ``n`` bytes it computes the time the transfer should have
    taken at ``max_bytes_per_second`` and sleeps for the difference when
    the transfer is ahead of schedule.

    A new instance is created for every transfer; instances are not
    shared between threads.

    Examples:
        >>> import io
        >>> with ThrottledStream(io.BytesIO(b"abc"), 0) as stream:
        ...     stream.read()
        b'abc'
    """

    def __init__(
        self,
        base_stream: IO[bytes],
        max_bytes_per_second: int,
        cancel_token: Optional["CancellationToken"] = None,
    ):
        """Initialize the throttled stream.

        Args:
            base_stream: Underlying binary stream
            max_bytes_per_second: Rate ceiling; 0 or less disables throttling
            cancel_token: Optional token checked before every chunk
        """
        self._base_stream = base_stream
        self.max_bytes_per_second = max_bytes_per_second
        self.cancel_token = cancel_token
        self.bytes_transferred = 0
        self._start = time.monotonic()

    def _throttle(self, count: int) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

        if self.max_bytes_per_second <= 0 or count <= 0:
            return

        expected_ms = (
            (self.bytes_transferred + count) * 1000 / self.max_bytes_per_second
        )
        actual_ms = (time.monotonic() - self._start) * 1000

        if expected_ms > actual_ms:
            delay = (expected_ms - actual_ms) / 1000
            logger.debug(f"Throttling transfer for {delay:.3f}s")
            time.sleep(delay)

    def read(self, size: int = -1) -> bytes:
        if size is not None and size > 0:
            self._throttle(size)
            data = self._base_stream.read(size)
        else:
            # Unknown length: read first, then pay for what was read
            data = self._base_stream.read()
            self._throttle(len(data))
        self.bytes_transferred += len(data)
        return data

    def write(self, data: bytes) -> int:
        self._throttle(len(data))
        written = self._base_stream.write(data)
        count = len(data) if written is None else written
        self.bytes_transferred += count
        return count

    def readable(self) -> bool:
        return self._base_stream.readable()

    def writable(self) -> bool:
        return self._base_stream.writable()

    def seekable(self) -> bool:
        return self._base_stream.seekable()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._base_stream.seek(offset, whence)

    def tell(self) -> int:
        return self._base_stream.tell()

    def flush(self) -> None:
        self._base_stream.flush()

    def close(self) -> None:
        self._base_stream.close()

    @property
    def closed(self) -> bool:
        return self._base_stream.closed

    def __enter__(self) -> "ThrottledStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
