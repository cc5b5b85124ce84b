"""
Catalog API - Main FastAPI Application

Product catalog service with a cache-aside read path:
- Product CRUD dispatched through the request pipeline
- Response caching for product reads (in-process or Redis store)
- Cache invalidation on every successful write
- Cache health and hit/miss statistics
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry import trace

from .api.endpoints.health import router as health_router
from .api.endpoints.products import router as products_router
from .core.config import get_settings
from .core.correlation import (
    CorrelationIdMiddleware,
    get_correlation_id,
    get_request_correlation_id,
)
from .core.exceptions import ServiceException
from .core.logging import configure_logging
from .core.telemetry import configure_tracing, shutdown_tracing
from .db import close_database
from .services.cache.factory import build_cache_store, build_coordinator

settings = get_settings()
configure_logging(settings)
logger = structlog.get_logger()


# Application lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the cache store and coordinator, release them on shutdown."""
    logger.info("Starting Catalog API", environment=settings.ENVIRONMENT)
    configure_tracing(settings)

    store = build_cache_store(settings)
    app.state.cache_store = store
    app.state.cache_coordinator = build_coordinator(settings, store)

    logger.info(
        "Catalog API started successfully",
        version="0.1.0",
        cache_backend=settings.CACHE_BACKEND,
        single_flight=settings.CACHE_SINGLE_FLIGHT,
    )

    yield

    logger.info("Shutting down Catalog API")
    try:
        await store.close()
        await close_database()
        shutdown_tracing()
        logger.info("Catalog API shutdown completed")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e), exc_info=True)


# Create FastAPI application
app = FastAPI(
    title="Catalog API",
    description="Product catalog with cache-aside response caching",
    version="0.1.0",
    lifespan=lifespan,
)

# Add correlation ID middleware for request tracking
app.add_middleware(CorrelationIdMiddleware)

# Include API routers
app.include_router(health_router)
app.include_router(products_router, tags=["products"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Catalog API",
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
    }


@app.exception_handler(ServiceException)
async def service_exception_handler(request: Request, exc: ServiceException):
    """Report domain errors as problem details."""
    correlation_id = get_request_correlation_id(request) or get_correlation_id()

    logger.warning(
        "Request failed",
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code,
        error=exc.message,
        correlation_id=correlation_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        media_type="application/problem+json",
        content={
            "type": exc.error_code,
            "title": exc.title,
            "status": exc.status_code,
            "detail": exc.message,
            "instance": request.url.path,
            "correlation_id": correlation_id,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler with OpenTelemetry context"""
    correlation_id = get_request_correlation_id(request) or get_correlation_id()

    span = trace.get_current_span()
    span.set_attribute("error.type", type(exc).__name__)
    span.set_attribute("error.path", request.url.path)
    span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc)))

    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        correlation_id=correlation_id,
        exc_info=True,
    )

    error_response = {
        "error": "Internal server error",
        "message": "An unexpected error occurred",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if correlation_id:
        error_response["correlation_id"] = correlation_id

    return JSONResponse(status_code=500, content=error_response)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
