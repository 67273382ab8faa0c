"""Cancellation and deadline signal for a single fetch."""
import threading
import time
from typing import Optional

from bundle_fetch.core.errors import FetchCancelledError


class FetchContext:
    """Carries a cancel flag and an optional deadline into a fetch.

    Another thread may call ``cancel()``; the fetch notices at its next
    check, at the latest within one git poll interval.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def background(cls) -> "FetchContext":
        """A context that is never cancelled and has no deadline."""
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def reason(self) -> Optional[str]:
        if self._event.is_set():
            return "cancelled"
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return "deadline exceeded"
        return None

    def check(self, operation: str) -> None:
        """Raise FetchCancelledError if cancelled or past the deadline."""
        reason = self.reason()
        if reason is not None:
            raise FetchCancelledError(operation, reason)
