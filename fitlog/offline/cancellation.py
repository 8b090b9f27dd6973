"""
Cancellation tokens for in-flight fetches.

A state container hands a token to every fetch it starts; unmounting the
container cancels the token so late results are dropped instead of written
into a consumer that no longer exists.
"""
import threading
from typing import Callable, List, Optional

from fitlog.errors import OperationCancelledError


class CancellationToken:
    """Thread-safe, one-way cancel flag with callbacks."""

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run callback on cancel (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"Operation cancelled: {self.reason}")

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)
