"""Request deadlines passed down into every storage call."""

from __future__ import annotations

import time
from threading import Event
from typing import Optional


class OperationCancelled(Exception):
    """Raised when a deadline expires or is cancelled mid-operation."""


class Deadline:
    """Cancellation token with an optional timeout on the monotonic clock.

    A ``Deadline`` is created once per inbound request and handed to the
    storage layer, which calls :meth:`check` before (and, where the backend
    allows it, during) each query.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before expiry, or ``None`` when there is no timeout."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        if self.cancelled:
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self) -> None:
        if self.cancelled:
            raise OperationCancelled("Operation was cancelled.")
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise OperationCancelled("Operation deadline exceeded.")


def check_deadline(deadline: Optional[Deadline]) -> None:
    if deadline is not None:
        deadline.check()
