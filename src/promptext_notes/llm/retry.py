"""Bounded retry with configurable backoff."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from .context import RunContext
from .types import CancellationError, ConfigurationError, RetryExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_delay(backoff: str, attempt: int, initial_delay: float) -> float:
    """Delay before the attempt following ``attempt`` (1-indexed)."""
    if backoff == "exponential":
        return initial_delay * (2 ** (attempt - 1))
    if backoff == "linear":
        return initial_delay * attempt
    if backoff == "constant":
        return initial_delay
    raise ConfigurationError(f"invalid backoff strategy: {backoff}")


def retry_with_backoff(
    ctx: RunContext,
    policy: RetryPolicy,
    operation: Callable[[RunContext], T],
    label: str = "operation",
) -> T:
    """Runs ``operation`` up to ``policy.attempts`` times.

    Errors whose ``retryable`` flag is False (configuration, cancellation)
    propagate immediately. Everything else is retried, and the last one is
    wrapped in RetryExhaustedError once attempts run out. A context that ends
    during a backoff delay aborts with CancellationError.
    """
    policy.validate()

    for attempt in range(1, policy.attempts + 1):
        ctx.raise_if_done()
        try:
            return operation(ctx)
        except Exception as exc:
            if not getattr(exc, "retryable", True):
                raise
            if attempt == policy.attempts:
                raise RetryExhaustedError(policy.attempts, exc) from exc
            last_error = exc

        delay = compute_delay(policy.backoff, attempt, policy.initial_delay_seconds)
        logger.warning(
            "%s attempt %d/%d failed: %s; retrying in %.1fs",
            label,
            attempt,
            policy.attempts,
            last_error,
            delay,
        )
        if ctx.wait(delay):
            raise CancellationError(ctx.reason()) from last_error
