"""Cooperative cancellation for long-running transfers."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Shared signal that a caller wants an in-flight transfer stopped.

    Workers poll ``cancelled`` at their scheduling points. ``cancel()``
    is idempotent: firing the token twice has the same effect as once,
    and registered callbacks run only on the first call.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Fire the token.

        Returns:
            True if this call fired the token, False if it had already
            been fired.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)

        logger.debug("Cancellation requested: %s", reason)
        for callback in callbacks:
            callback()
        return True

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early if the token fires.

        Returns:
            True if the token has fired.
        """
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

