"""Tests for the cancellation token."""

import threading
import time
from unittest.mock import MagicMock

from bucket_uploader.cancellation import CancellationToken


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_new_token_is_not_cancelled(self):
        token = CancellationToken()
        assert token.cancelled is False
        assert token.reason is None

    def test_cancel_sets_flag_and_reason(self):
        token = CancellationToken()

        assert token.cancel("user request") is True

        assert token.cancelled is True
        assert token.reason == "user request"

    def test_cancel_is_idempotent(self):
        """Firing twice has the same effect as firing once."""
        token = CancellationToken()
        callback = MagicMock()
        token.on_cancel(callback)

        assert token.cancel("first") is True
        assert token.cancel("second") is False

        assert token.reason == "first"
        callback.assert_called_once()

    def test_callback_registered_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        callback = MagicMock()

        token.on_cancel(callback)

        callback.assert_called_once()

    def test_wait_times_out_while_not_cancelled(self):
        token = CancellationToken()

        assert token.wait(0.01) is False

    def test_wait_wakes_when_fired_from_another_thread(self):
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        start = time.monotonic()

        assert token.wait(10) is True

        assert time.monotonic() - start < 5
        timer.join()
