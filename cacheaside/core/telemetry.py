"""
OpenTelemetry setup.

Cache and repository code records spans through ``opentelemetry.trace``
only. This module installs the SDK tracer provider those spans go to, with
a resource describing the service.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(settings: Optional[Settings] = None) -> Optional[TracerProvider]:
    """
    Install the SDK tracer provider when tracing is enabled.

    Returns:
        The installed provider, or None when ``OTEL_ENABLED`` is off
    """
    global _tracer_provider
    settings = settings or get_settings()

    if not settings.OTEL_ENABLED:
        return None
    if _tracer_provider is not None:
        return _tracer_provider

    resource = Resource.create(
        {
            "service.name": settings.SERVICE_NAME,
            "service.version": "0.1.0",
            "deployment.environment": settings.ENVIRONMENT,
        }
    )
    provider = TracerProvider(resource=resource)
    if settings.OTEL_CONSOLE_EXPORT:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    logger.info(
        "OpenTelemetry tracing configured",
        extra={
            "service_name": settings.SERVICE_NAME,
            "console_export": settings.OTEL_CONSOLE_EXPORT,
        },
    )
    return provider


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider, if one was installed."""
    global _tracer_provider
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
