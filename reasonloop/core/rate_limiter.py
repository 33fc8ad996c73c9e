"""
Meters — admission control around provider calls.

A ``Meter`` wraps an async callable. The orchestrator runs every provider
attempt through ``config.meter.run(...)``:

* ``NoopMeter`` admits everything.
* ``RateLimitMeter`` combines a token bucket (burst) with a sliding window
  (sustained rate) and *waits* until both admit the request.
* ``ConcurrencyMeter`` caps the number of in-flight calls with a semaphore.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limit meter."""
    max_requests: int = 60            # Max requests per window
    window_seconds: float = 60.0      # Time window
    burst_limit: int = 10             # Max burst (token bucket capacity)
    refill_rate: float = 1.0          # Tokens per second


# ── TokenBucket ──────────────────────────────────────────────────

class TokenBucket:
    """Token bucket rate limiter for burst control."""

    def __init__(self, capacity: int = 10, refill_rate: float = 1.0):
        self._capacity = capacity
        self._refill_rate = refill_rate
        self._tokens = float(capacity)
        self._last_refill = time.monotonic()

    def try_acquire(self, tokens: int = 1) -> bool:
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return True
        return False

    def time_until_available(self, tokens: int = 1) -> float:
        """Seconds until the requested tokens become available."""
        self._refill()
        if self._tokens >= tokens:
            return 0.0
        needed = tokens - self._tokens
        return needed / self._refill_rate if self._refill_rate > 0 else float("inf")

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_rate)
        self._last_refill = now


# ── SlidingWindowCounter ─────────────────────────────────────────

class SlidingWindowCounter:
    """Sliding window rate limiter for sustained rate control."""

    def __init__(self, max_requests: int = 60, window_seconds: float = 60.0):
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._timestamps: List[float] = []

    def try_acquire(self) -> bool:
        self._clean()
        if len(self._timestamps) < self._max_requests:
            self._timestamps.append(time.monotonic())
            return True
        return False

    def remaining(self) -> int:
        self._clean()
        return max(0, self._max_requests - len(self._timestamps))

    def reset_after(self) -> float:
        """Seconds until the oldest request expires from the window."""
        self._clean()
        if not self._timestamps:
            return 0.0
        oldest = self._timestamps[0]
        return max(0.0, (oldest + self._window_seconds) - time.monotonic())

    def _clean(self) -> None:
        cutoff = time.monotonic() - self._window_seconds
        self._timestamps = [ts for ts in self._timestamps if ts > cutoff]


# ── Meters ───────────────────────────────────────────────────────

class Meter(ABC):
    """Admission control for an async operation."""

    @abstractmethod
    async def run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        ...


class NoopMeter(Meter):

    async def run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        return await fn()

    def __repr__(self) -> str:
        return "NoopMeter()"


class RateLimitMeter(Meter):
    """
    Waits until both the token bucket and the sliding window admit a request.

    Usage::

        meter = RateLimitMeter(RateLimitConfig(max_requests=30, burst_limit=5))
        config = Config.default().with_meter(meter)
    """

    def __init__(self, config: RateLimitConfig = RateLimitConfig()):
        self.config = config
        self._bucket = TokenBucket(config.burst_limit, config.refill_rate)
        self._window = SlidingWindowCounter(config.max_requests, config.window_seconds)
        self._lock = asyncio.Lock()
        self.total_requests = 0
        self.total_waits = 0

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                if self._window.remaining() > 0 and self._bucket.try_acquire():
                    self._window.try_acquire()
                    self.total_requests += 1
                    return
                delay = self._bucket.time_until_available()
                if self._window.remaining() == 0:
                    delay = max(delay, self._window.reset_after())
                self.total_waits += 1
                logger.debug("Rate limited, waiting %.2fs", delay)
                await asyncio.sleep(delay)

    async def run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        await self.acquire()
        return await fn()


class ConcurrencyMeter(Meter):
    """Caps the number of concurrent operations."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)

    async def run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        async with self._semaphore:
            return await fn()
