"""Cooperative cancellation shared between a caller and long-running jobs."""

import threading
from typing import Callable, List

from ..exceptions import OperationCancelledError
from .logging import get_logger

logger = get_logger(__name__)

CancelCallback = Callable[[], None]


class CancellationRegistration:
    """Handle returned by :meth:`CancellationToken.register`."""

    def __init__(self, token: "CancellationToken", callback: CancelCallback) -> None:
        self._token = token
        self._callback = callback

    def dispose(self) -> None:
        """Stop the callback from firing on a later cancel. Safe to repeat."""
        self._token._unregister(self._callback)

    def __enter__(self) -> "CancellationRegistration":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.dispose()


class CancellationToken:
    """Thread-safe cancellation flag with callbacks.

    ``cancel()`` may be called from any thread. Registered callbacks run on
    the cancelling thread, once, outside the internal lock.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[CancelCallback] = []
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Request cancellation and run registered callbacks."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = self._callbacks[:]
            self._callbacks.clear()

        logger.debug(f"Cancellation requested ({len(callbacks)} callback(s))")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        with self._lock:
            return self._cancelled

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self.is_cancelled:
            raise OperationCancelledError("Operation was cancelled")

    def register(self, callback: CancelCallback) -> CancellationRegistration:
        """Register a callback to run on cancellation.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            already_cancelled = self._cancelled
            if not already_cancelled:
                self._callbacks.append(callback)

        if already_cancelled:
            callback()
        return CancellationRegistration(self, callback)

    def _unregister(self, callback: CancelCallback) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
