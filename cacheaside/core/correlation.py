"""
Correlation ID Middleware

Implements correlation ID management for request tracking.
The ID is taken from the incoming headers when present, otherwise generated,
bound into structlog's context variables for the lifetime of the request and
echoed back in the response headers.
"""

import re
import uuid
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Request
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse
from starlette.types import ASGIApp

logger = structlog.get_logger()

CORRELATION_HEADERS = (
    "x-correlation-id",
    "correlation-id",
    "x-request-id",
    "request-id",
)

_VALID_ID = re.compile(r"^[a-zA-Z0-9\-_\.]{8,255}$")


def get_correlation_id() -> Optional[str]:
    """Correlation ID bound to the current context, if any."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def new_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_request_correlation_id(request: Request) -> Optional[str]:
    """Extract a correlation ID from request headers."""
    for header_name in CORRELATION_HEADERS:
        value = request.headers.get(header_name, "").strip()
        if value:
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware for managing correlation IDs in HTTP requests.

    Automatically generates or extracts correlation IDs, binds them to the
    logging context and the current span, and adds them to response headers.
    """

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id"):
        super().__init__(app)
        self.header_name = header_name.lower()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[StarletteResponse]],
    ) -> StarletteResponse:
        correlation_id = get_request_correlation_id(request)
        if correlation_id is None or not _VALID_ID.match(correlation_id):
            correlation_id = new_correlation_id()

        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        trace.get_current_span().set_attribute("correlation_id", correlation_id)

        try:
            logger.debug("Request started", method=request.method, path=request.url.path)
            response = await call_next(request)
            response.headers[self.header_name] = correlation_id
            logger.debug("Request completed", status_code=response.status_code)
            return response
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")
