"""
Provider retry — bounded attempts with exponential backoff and jitter.

Any fault of a provider attempt is retried until the policy runs out of
attempts; configuration faults fail at once since no retry can fix them.
When the attempts are spent the last fault is reported as
``PROVIDER_RETRIES_EXHAUSTED``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import AIError, ErrorCode, ProviderError, is_retryable

logger = logging.getLogger(__name__)

A = TypeVar("A")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a provider call is attempted and how long to back off."""
    max_attempts: int = 10
    backoff_base: float = 0.5
    backoff_max: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    @classmethod
    def immediate(cls, max_attempts: int) -> "RetryPolicy":
        """Retry without any delay between attempts."""
        return cls(max_attempts=max_attempts, backoff_base=0.0, jitter=False)

    @property
    def attempts(self) -> int:
        return max(1, self.max_attempts)

    def delay(self, failed_attempt: int) -> float:
        """Seconds to wait after the *failed_attempt*-th failure (1-based)."""
        delay = min(
            self.backoff_base * (self.backoff_multiplier ** (failed_attempt - 1)),
            self.backoff_max,
        )
        if self.jitter:
            delay += delay * random.random() * 0.5
        return delay


def describe(error: BaseException) -> str:
    if isinstance(error, AIError):
        return error.message
    return f"{type(error).__name__}: {error}"


async def retry_async(
    fn: Callable[..., Awaitable[A]],
    *args: Any,
    policy: Optional[RetryPolicy] = None,
    **kwargs: Any,
) -> A:
    """
    Await ``fn(*args, **kwargs)`` under *policy*.

    Usage::

        message = await retry_async(config.meter.run, attempt,
                                    policy=config.retry_policy)
    """
    policy = policy or RetryPolicy()
    attempts = policy.attempts
    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt == attempts:
                raise ProviderError(
                    f"Provider failed after {attempts} attempt(s): {describe(e)}",
                    ErrorCode.PROVIDER_RETRIES_EXHAUSTED,
                ) from e
            delay = policy.delay(attempt)
            logger.info("Retry %d/%d after %.2fs: %s", attempt, attempts, delay, describe(e))
            await asyncio.sleep(delay)
