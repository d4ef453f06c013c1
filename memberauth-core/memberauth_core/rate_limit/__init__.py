"""
Rate Limiting
=============
Per-IP fixed-window limiters (in-memory and Redis) and the middleware that
applies them to the API.
"""

from .models import RateLimitInfo
from .in_memory import InMemoryRateLimiter
from .redis_limiter import RedisRateLimiter, WINDOW_COUNTER_SCRIPT
from .middleware import RateLimitMiddleware, client_ip

__all__ = [
    # Models
    "RateLimitInfo",
    # Limiters
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "WINDOW_COUNTER_SCRIPT",
    # Middleware
    "RateLimitMiddleware",
    "client_ip",
]
