"""
Redis Rate Limiter
==================
Per-IP fixed-window counters on Redis, shared by every worker.
"""

import time
from typing import Callable, Optional

import structlog
from redis.exceptions import RedisError

from .models import RateLimitInfo

logger = structlog.get_logger(__name__)

# One counter key per client and window. The first hit of a window sets the
# key to expire at the window end, so finished windows clean themselves up.
# KEYS[1] = window counter; ARGV[1] = window end (unix seconds)
WINDOW_COUNTER_SCRIPT = """
local hits = redis.call('INCR', KEYS[1])
if hits == 1 then
    redis.call('EXPIREAT', KEYS[1], ARGV[1])
end
return hits
"""


class RedisRateLimiter:
    """
    Counts requests per client in fixed windows aligned to the epoch.

    When Redis cannot be reached the request is allowed and the failure is
    logged; OTP state never depends on this limiter.
    """

    def __init__(
        self,
        redis_client,
        rate: int = 100,
        window: int = 900,
        key_prefix: str = "ratelimit:ip",
        clock: Optional[Callable[[], float]] = None,
    ):
        self.redis = redis_client
        self.rate = rate
        self.window = window
        self.key_prefix = key_prefix
        self.clock = clock or time.time
        self._counter = redis_client.register_script(WINDOW_COUNTER_SCRIPT)

    async def check(self, key: str) -> RateLimitInfo:
        now = int(self.clock())
        window_start = now - now % self.window
        reset_at = window_start + self.window

        try:
            hits = int(await self._counter(
                keys=[f"{self.key_prefix}:{key}:{window_start}"],
                args=[reset_at],
            ))
        except RedisError as e:
            logger.error("Rate limit counter unavailable, allowing request", client=key, error=str(e))
            return RateLimitInfo(allowed=True, remaining=self.rate, limit=self.rate, reset_at=reset_at)

        if hits > self.rate:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.rate,
                reset_at=reset_at,
                retry_after=max(reset_at - now, 1),
            )
        return RateLimitInfo(allowed=True, remaining=self.rate - hits, limit=self.rate, reset_at=reset_at)
