"""
Application Factory
===================
Builds the FastAPI app for the member authentication service.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .. import __version__
from ..config import AuthConfig
from ..errors import MemberAuthError, RateLimited, ValidationError
from ..health import create_health_router
from ..log_config import RequestLoggingMiddleware
from ..rate_limit import InMemoryRateLimiter, RedisRateLimiter, RateLimitMiddleware
from ..security_headers import SecurityHeadersMiddleware
from .dependencies import Services
from .routes import auth_router, profile_router

logger = structlog.get_logger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(MemberAuthError)
    async def member_auth_error_handler(request: Request, exc: MemberAuthError):
        if exc.status_code >= 500:
            logger.error("Request failed", code=exc.code, path=request.url.path, details=exc.details)
        headers = None
        if isinstance(exc, RateLimited) and exc.retry_after is not None:
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
        error = ValidationError(f"Invalid value for {field}")
        return JSONResponse(error.to_dict(), status_code=error.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception", path=request.url.path, method=request.method)
        return JSONResponse(MemberAuthError().to_dict(), status_code=500)


def create_app(config: Optional[AuthConfig] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings, read from the environment when omitted
        services: Pre-wired services (tests); built from config when omitted
    """
    if services is None:
        config = (config or AuthConfig.from_env()).validate()
        services = Services.build(config)
    config = services.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.delivery.initialize_all()
        if services.database is not None:
            await services.database.create_all()
        logger.info("Service started", service=config.service_name, environment=config.environment)
        try:
            yield
        finally:
            await services.delivery.close_all()
            if services.database is not None:
                await services.database.close()
            if services.redis is not None:
                await services.redis.aclose()
            logger.info("Service stopped", service=config.service_name)

    app = FastAPI(
        title="Member Auth",
        description="Passwordless OTP login and member profiles",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    if services.redis is not None:
        limiter = RedisRateLimiter(
            services.redis,
            rate=config.rate_limit_requests,
            window=config.rate_limit_window_seconds,
        )
    else:
        limiter = InMemoryRateLimiter(
            rate=config.rate_limit_requests,
            window=config.rate_limit_window_seconds,
        )

    # Added last runs first: logging wraps everything
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.client_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=config.is_production)
    app.add_middleware(RequestLoggingMiddleware)

    _register_exception_handlers(app)

    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(profile_router, prefix="/api/profile", tags=["Profile"])
    app.include_router(create_health_router(
        config.service_name,
        __version__,
        database=services.database,
        redis_client=services.redis,
    ))

    return app
