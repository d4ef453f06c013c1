"""
Health Check Module
===================
Liveness/readiness endpoints with backing-store status.
"""

import time
from typing import Optional, Dict
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from enum import Enum
import structlog

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_database(database) -> ComponentHealth:
    """Check database connectivity and latency."""
    try:
        start = time.time()
        await database.ping()
        latency = (time.time() - start) * 1000
        return ComponentHealth(status="connected", latency_ms=round(latency, 2))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return ComponentHealth(status="error", error=type(e).__name__)


async def check_redis(redis_client) -> ComponentHealth:
    """Check Redis connectivity and latency."""
    try:
        start = time.time()
        await redis_client.ping()
        latency = (time.time() - start) * 1000
        return ComponentHealth(status="connected", latency_ms=round(latency, 2))
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return ComponentHealth(status="error", error=type(e).__name__)


def create_health_router(
    service_name: str,
    version: str,
    database=None,
    redis_client=None,
) -> APIRouter:
    """
    Create the health router.

    Args:
        service_name: Reported service name
        version: Service version
        database: memberauth_core.database.Database (optional)
        redis_client: Async Redis client (optional)

    Returns:
        Router with /health, /health/live and /health/ready
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check with component statuses."""
        components: Dict[str, ComponentHealth] = {}
        overall_status = HealthStatus.HEALTHY

        if database is not None:
            components["database"] = await check_database(database)
            if components["database"].status == "error":
                overall_status = HealthStatus.UNHEALTHY

        if redis_client is not None:
            components["redis"] = await check_redis(redis_client)
            if components["redis"].status == "error":
                # Challenges live in Redis, so OTP is down without it
                overall_status = HealthStatus.UNHEALTHY

        return HealthResponse(
            status=overall_status,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe():
        if database is not None and (await check_database(database)).status == "error":
            return JSONResponse({"status": "not_ready", "reason": "database_unavailable"}, status_code=503)
        if redis_client is not None and (await check_redis(redis_client)).status == "error":
            return JSONResponse({"status": "not_ready", "reason": "redis_unavailable"}, status_code=503)
        return {"status": "ready"}

    return router
