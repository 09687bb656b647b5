#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Diagnostics service for the request/cache orchestration layer. It owns the
process-wide cache orchestrator and request throttler and exposes their state
and the performance reports to the developer dashboard.

Author: Mess Platform Team
Date: 2025-12-10
"""

import math
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from messcache.application.api.routes.diagnostics import router as diagnostics_router
from messcache.application.api.routes.health import router as health_router
from messcache.core.config.constants import HEADER_REQUEST_ID, HEADER_RETRY_AFTER
from messcache.core.config.settings import get_settings
from messcache.core.exceptions import (
    MessCacheError,
    QueueClearedError,
    RateLimitExceededError,
)
from messcache.core.logging import clear_request_id, get_logger, set_request_id, setup_logging
from messcache.core.resilience import RequestThrottler
from messcache.infrastructure.cache import (
    CacheOrchestrator,
    RedisDurableStore,
    get_cache_service,
)

logger = get_logger(__name__)

API_BASE_PATH = "/api/v1"


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    Services injected through create_app() are used as-is; otherwise the
    global orchestrator and a fresh throttler are created here.
    """
    settings = get_settings()

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting cache diagnostics service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
        persistent_backend=settings.cache.CACHE_PERSISTENT_BACKEND,
    )

    if not hasattr(app.state, "cache_service"):
        app.state.cache_service = get_cache_service()
    if not hasattr(app.state, "throttler"):
        app.state.throttler = RequestThrottler()

    cache: CacheOrchestrator = app.state.cache_service
    store = cache.persistent.store

    try:
        if isinstance(store, RedisDurableStore):
            await store.connect()
            logger.info("Redis connected")

        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application")

        await app.state.throttler.shutdown()
        await cache.shutdown()
        if isinstance(store, RedisDurableStore):
            await store.disconnect()

        logger.info("Application shutdown complete")


# ============================================================================
# Exception Handlers
# ============================================================================


async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """429 with the policy's backoff hint, rounded up to whole seconds."""
    retry_after_s = max(1, math.ceil(exc.retry_after_ms / 1000))
    logger.warning("Rate limit exceeded", request_key=exc.request_id, retry_after_ms=exc.retry_after_ms)

    return JSONResponse(
        status_code=429,
        content=exc.to_dict(),
        headers={HEADER_RETRY_AFTER: str(retry_after_s)},
    )


async def queue_cleared_handler(request: Request, exc: QueueClearedError) -> JSONResponse:
    return JSONResponse(status_code=503, content=exc.to_dict())


async def cache_error_handler(request: Request, exc: MessCacheError) -> JSONResponse:
    """Any other cache-layer error."""
    logger.error(
        f"Cache layer exception: {exc.message}",
        error_type=type(exc).__name__,
        request_key=exc.request_id,
    )

    return JSONResponse(status_code=500, content=exc.to_dict())


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    cache_service: CacheOrchestrator | None = None,
    throttler: RequestThrottler | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        cache_service: Orchestrator to expose (default: global instance)
        throttler: Throttler to expose (default: created at startup)

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Diagnostics for the mess request/cache orchestration layer",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    if cache_service is not None:
        app.state.cache_service = cache_service
    if throttler is not None:
        app.state.throttler = throttler

    # Most specific handler wins, so the subclasses get their own status codes
    app.add_exception_handler(RateLimitExceededError, rate_limit_handler)
    app.add_exception_handler(QueueClearedError, queue_cleared_handler)
    app.add_exception_handler(MessCacheError, cache_error_handler)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """
        Inject a request ID into all requests for log correlation.
        """
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint with API information.
        """
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{API_BASE_PATH}/health",
        }

    app.include_router(health_router, prefix=API_BASE_PATH)
    app.include_router(diagnostics_router, prefix=API_BASE_PATH)

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "messcache.application.app:create_app",
        factory=True,
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
