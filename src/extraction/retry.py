# src/extraction/retry.py — v1
"""Exponential backoff around extraction capability calls.

Only TransientError is retried. FatalError and any other exception
propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from enliterator.extraction.base_capability import TransientError

logger = logging.getLogger(__name__)


class RetryExhausted(Exception):
    """All attempts failed with transient errors."""

    def __init__(self, capability: str, attempts: int, last_error: Exception):
        self.capability = capability
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Capability '{capability}' failed after {attempts} attempts: {last_error}"
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration for one stage's capability calls."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
            max_delay_s=settings.retry_max_delay_s,
            jitter=settings.retry_jitter,
        )


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before retrying after the given failed attempt (0-based)."""
    delay = min(policy.base_delay_s * (policy.backoff_factor ** attempt), policy.max_delay_s)
    if policy.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    capability: str = "unknown",
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> tuple[Any, int]:
    """Call ``fn`` retrying transient failures.

    Returns:
        Tuple of (result, attempts used).

    Raises:
        RetryExhausted: If every attempt raised TransientError.
    """
    policy = policy or RetryPolicy()
    attempts = 0

    while True:
        attempts += 1
        try:
            return await fn(*args, **kwargs), attempts
        except TransientError as e:
            if attempts >= policy.max_attempts:
                raise RetryExhausted(capability, attempts, e) from e

            delay = compute_delay(policy, attempts - 1)
            logger.warning(
                "Capability '%s' transient error (attempt %d/%d), retrying in %.1fs: %s",
                capability, attempts, policy.max_attempts, delay, e,
            )
            await sleep(delay)
