"""Cancellation and deadline handling shared by adapters and the retry loop."""

from __future__ import annotations

import threading
import time

from .types import CancellationError


class RunContext:
    """Caller-owned cancellation signal with an optional deadline.

    Both an in-flight HTTP request (via :meth:`bound_timeout`) and a retry
    delay (via :meth:`wait`) observe the same signal.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def done(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def reason(self) -> str:
        return "cancelled" if self._cancelled.is_set() else "deadline exceeded"

    def raise_if_done(self, provider: str | None = None) -> None:
        if self.done():
            raise CancellationError(self.reason(), provider=provider)

    def wait(self, seconds: float) -> bool:
        """Sleeps for ``seconds``; returns True if the context ended first."""
        remaining = self.remaining()
        if remaining is not None and remaining <= seconds:
            self._cancelled.wait(remaining)
            return True
        return self._cancelled.wait(seconds)

    def bound_timeout(self, timeout_seconds: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout_seconds
        return min(timeout_seconds, remaining)
