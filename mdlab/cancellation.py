"""
CancelToken: thread-safe cancellation signal for a running cell.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Signals that the user wants a running cell stopped.

    ``cancel()`` is idempotent: callbacks run once, on the first call.
    A callback registered after cancellation runs immediately.
    """

    def __init__(self):
        self._cancelled = False
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        """Request cancellation."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        self._event.set()

        # Run callbacks outside the lock so they may touch the token
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` expires; True if cancelled."""
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register ``callback`` to run on cancellation.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
