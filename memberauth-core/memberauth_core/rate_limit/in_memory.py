"""
In-Memory Rate Limiter
======================
Fixed-window counter kept in process memory.
"""

import time
from typing import Callable, Dict, Optional

from .models import RateLimitInfo


class InMemoryRateLimiter:
    """
    Fixed-window rate limiter.

    For a single worker. Use RedisRateLimiter when running several.
    """

    def __init__(self, rate: int = 100, window: int = 900, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            rate: Number of requests allowed per window
            window: Window size in seconds
            clock: Time source, defaults to time.time
        """
        self.rate = rate
        self.window = window
        self.clock = clock or time.time
        self._buckets: Dict[str, dict] = {}

    async def check(self, key: str) -> RateLimitInfo:
        """
        Count a request and decide whether it is allowed.

        Args:
            key: Client key (IP address)
        """
        now = self.clock()
        window_start = int(now / self.window) * self.window
        reset_at = int(window_start + self.window)

        bucket = self._buckets.get(key)
        if bucket is None or bucket["window"] < window_start:
            self._prune(window_start)
            bucket = self._buckets[key] = {"window": window_start, "count": 0}

        if bucket["count"] >= self.rate:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.rate,
                reset_at=reset_at,
                retry_after=max(reset_at - int(now), 1),
            )

        bucket["count"] += 1
        return RateLimitInfo(
            allowed=True,
            remaining=self.rate - bucket["count"],
            limit=self.rate,
            reset_at=reset_at,
        )

    def _prune(self, window_start: int) -> None:
        """Drop buckets from earlier windows."""
        stale = [k for k, b in self._buckets.items() if b["window"] < window_start]
        for k in stale:
            del self._buckets[k]
