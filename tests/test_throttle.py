"""Tests for the bandwidth-limited stream wrapper."""

import io
import time
from unittest.mock import patch

import pytest

from pys3sync.exceptions import S3SyncCancelledError
from pys3sync.sync.cancellation import CancellationToken
from pys3sync.throttle import ThrottledStream


class TestThrottledStreamTiming:
    """Real-clock checks of the rate limit."""

    def test_burst_read_is_limited(self):
        payload = b"x" * 2_000_000
        stream = ThrottledStream(io.BytesIO(payload), 1_000_000)

        start = time.monotonic()
        data = stream.read(len(payload))
        elapsed = time.monotonic() - start

        assert data == payload
        assert elapsed >= 1.9

    def test_unlimited_read_adds_no_delay(self):
        payload = b"x" * 2_000_000
        stream = ThrottledStream(io.BytesIO(payload), 0)

        start = time.monotonic()
        data = stream.read(len(payload))
        elapsed = time.monotonic() - start

        assert data == payload
        assert elapsed < 0.5


class TestThrottledStream:
    """Unit tests with a patched clock."""

    @pytest.fixture
    def mock_time(self):
        with patch("pys3sync.throttle.time") as mock_time:
            mock_time.monotonic.return_value = 100.0
            yield mock_time

    def test_sleeps_for_expected_duration(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"a" * 1000), 500)

        stream.read(250)

        mock_time.sleep.assert_called_once_with(pytest.approx(0.5))

    def test_accounts_for_elapsed_time(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"a" * 1000), 500)
        stream.read(250)
        mock_time.sleep.reset_mock()

        # 1.2 s elapsed, 500 bytes due at 1.0 s: behind schedule
        mock_time.monotonic.return_value = 101.2
        stream.read(250)

        mock_time.sleep.assert_not_called()
        assert stream.bytes_transferred == 500

    def test_zero_limit_never_sleeps(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"a" * 1000), 0)
        stream.read(1000)
        mock_time.sleep.assert_not_called()

    def test_negative_limit_never_sleeps(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"a" * 1000), -5)
        stream.read(1000)
        mock_time.sleep.assert_not_called()

    def test_read_all_pays_after_reading(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"a" * 100), 100)

        assert stream.read() == b"a" * 100

        mock_time.sleep.assert_called_once_with(pytest.approx(1.0))
        assert stream.bytes_transferred == 100

    def test_write_is_throttled(self, mock_time):
        target = io.BytesIO()
        stream = ThrottledStream(target, 100)

        assert stream.write(b"b" * 50) == 50

        mock_time.sleep.assert_called_once_with(pytest.approx(0.5))
        assert target.getvalue() == b"b" * 50
        assert stream.bytes_transferred == 50

    def test_short_read_counts_actual_bytes(self, mock_time):
        stream = ThrottledStream(io.BytesIO(b"abc"), 0)
        assert stream.read(10) == b"abc"
        assert stream.bytes_transferred == 3


class TestThrottledStreamFileInterface:
    """Tests for the file-like delegation."""

    def test_delegates_seek_and_tell(self):
        stream = ThrottledStream(io.BytesIO(b"abcdef"), 0)
        stream.seek(2)
        assert stream.tell() == 2
        assert stream.read(2) == b"cd"
        assert stream.readable()
        assert stream.seekable()

    def test_context_manager_closes_base(self):
        base = io.BytesIO(b"abc")
        with ThrottledStream(base, 0) as stream:
            stream.read()
        assert base.closed
        assert stream.closed


class TestThrottledStreamCancellation:
    """Tests for mid-transfer cancellation."""

    def test_read_raises_after_cancel(self):
        token = CancellationToken()
        stream = ThrottledStream(io.BytesIO(b"a" * 10), 0, cancel_token=token)
        assert stream.read(5) == b"aaaaa"

        token.cancel()

        with pytest.raises(S3SyncCancelledError):
            stream.read(5)

    def test_write_raises_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        stream = ThrottledStream(io.BytesIO(), 0, cancel_token=token)

        with pytest.raises(S3SyncCancelledError):
            stream.write(b"data")
