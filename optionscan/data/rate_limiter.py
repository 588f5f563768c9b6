"""
Token Bucket Rate Limiter for Market Data Requests

A single limiter instance is shared by every scan that talks to the same
upstream provider, so the combined request rate of concurrent scans stays
under the provider's quota (Finnhub free tier: 60 calls/min, bursts of 30/s).

The bucket holds up to ``capacity`` tokens and refills at ``rate`` tokens
per second. Each outbound request takes one token, waiting when the bucket
is empty.

Usage:
    limiter = TokenBucketRateLimiter(rate=10, capacity=10)

    if limiter.acquire(timeout=5.0):
        response = client.get(...)
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_SECOND = 10.0


class TokenBucketRateLimiter:
    """
    Thread-safe token bucket.

    Args:
        rate: Tokens added per second.
        capacity: Maximum burst size. Defaults to max(1, rate).
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        rate: float = DEFAULT_REQUESTS_PER_SECOND,
        capacity: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if capacity is None:
            capacity = max(1.0, float(rate))
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")

        self.rate = float(rate)
        self.capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._last = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last = now

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Take a token, waiting for the bucket to refill if needed.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True when a token was taken, False if it would take longer
            than ``timeout``.
        """
        deadline = None if timeout is None else self._clock() + timeout

        while True:
            with self._lock:
                now = self._clock()
                self._refill(now)
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return True
                wait = (1.0 - self._tokens) / self.rate

            if deadline is not None and now + wait > deadline:
                logger.debug(f"Rate limiter: token not available within {timeout}s")
                return False

            self._sleep(wait)

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def __repr__(self) -> str:
        return f"TokenBucketRateLimiter(rate={self.rate}, capacity={self.capacity})"


__all__ = [
    "TokenBucketRateLimiter",
    "DEFAULT_REQUESTS_PER_SECOND",
]
