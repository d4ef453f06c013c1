"""
Rate Limit Middleware
=====================
Per-IP request limiting for the API routes.
"""

from typing import Iterable, Union

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
import structlog

from ..errors import RateLimited
from .in_memory import InMemoryRateLimiter
from .redis_limiter import RedisRateLimiter

logger = structlog.get_logger(__name__)


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """Resolve the client address, optionally honouring X-Forwarded-For."""
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over the per-IP budget with 429."""

    def __init__(
        self,
        app,
        limiter: Union[InMemoryRateLimiter, RedisRateLimiter],
        path_prefixes: Iterable[str] = ("/api/",),
        trust_forwarded: bool = False,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefixes = tuple(path_prefixes)
        self.trust_forwarded = trust_forwarded

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.path_prefixes):
            return await call_next(request)

        ip = client_ip(request, self.trust_forwarded)
        info = await self.limiter.check(ip)
        if not info.allowed:
            logger.warning("Rate limit exceeded", client_ip=ip, path=request.url.path)
            error = RateLimited(retry_after=info.retry_after)
            return JSONResponse(error.to_dict(), status_code=error.status_code, headers=info.headers())

        response = await call_next(request)
        response.headers.update(info.headers())
        return response
