"""
Request Pipeline

In-process mediator dispatching requests to their handlers through an ordered
chain of pipeline behaviors, and notifications to their subscribers.
Behaviors wrap the handler the way HTTP middleware wraps an endpoint: each
receives the request and a ``next_`` callable for the rest of the chain.
"""

import time
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Type

import structlog
from pydantic_core import to_jsonable_python

from ..core.correlation import get_correlation_id, new_correlation_id

logger = structlog.get_logger()

NextHandler = Callable[[], Awaitable[Any]]


class Request:
    """Base class for queries and commands sent through the mediator."""


class Notification:
    """Base class for events published through the mediator."""


class RequestHandler(ABC):
    """Handles exactly one request type."""

    @abstractmethod
    async def handle(self, request: Request) -> Any:
        pass


class NotificationHandler(ABC):
    """Reacts to a published notification."""

    @abstractmethod
    async def handle(self, notification: Notification) -> None:
        pass


class PipelineBehavior(ABC):
    """Cross-cutting step wrapped around every request handler."""

    @abstractmethod
    async def handle(self, request: Request, next_: NextHandler) -> Any:
        pass


class HandlerNotFoundError(LookupError):
    """Raised when no handler is registered for a request type."""

    def __init__(self, request_type: type):
        self.request_type = request_type
        super().__init__(f"No handler registered for {request_type.__name__}")


class Mediator:
    """
    Routes requests to handlers through the configured behaviors.

    Behaviors run in the order given: the first one is the outermost.
    """

    def __init__(self, behaviors: Sequence[PipelineBehavior] = ()):
        self.behaviors: List[PipelineBehavior] = list(behaviors)
        self._handlers: Dict[Type[Request], RequestHandler] = {}
        self._subscribers: Dict[Type[Notification], List[NotificationHandler]] = {}

    def register(self, request_type: Type[Request], handler: RequestHandler) -> None:
        """Register the handler for a request type."""
        self._handlers[request_type] = handler

    def subscribe(
        self, notification_type: Type[Notification], handler: NotificationHandler
    ) -> None:
        """Subscribe a handler to a notification type."""
        self._subscribers.setdefault(notification_type, []).append(handler)

    def _handler_for(self, request: Request) -> RequestHandler:
        for request_type in type(request).__mro__:
            handler = self._handlers.get(request_type)
            if handler is not None:
                return handler
        raise HandlerNotFoundError(type(request))

    async def send(self, request: Request) -> Any:
        """Dispatch a request and return its handler's response."""
        handler = self._handler_for(request)

        next_: NextHandler = partial(handler.handle, request)
        for behavior in reversed(self.behaviors):
            next_ = partial(behavior.handle, request, next_)
        return await next_()

    async def publish(self, notification: Notification) -> None:
        """Deliver a notification to every subscriber, in subscription order."""
        for notification_type in type(notification).__mro__:
            for handler in self._subscribers.get(notification_type, []):
                await handler.handle(notification)


def _describe(value: Any) -> Any:
    return to_jsonable_python(value, fallback=repr, exclude_none=True)


class LoggingBehavior(PipelineBehavior):
    """Logs every request and its response under a correlation ID."""

    def __init__(self, log_payloads: bool = True):
        self.log_payloads = log_payloads

    async def handle(self, request: Request, next_: NextHandler) -> Any:
        correlation_id = get_correlation_id() or new_correlation_id()
        log = logger.bind(
            correlation_id=correlation_id, request_type=type(request).__name__
        )

        if self.log_payloads:
            log.info("Handling request", request=_describe(request))
        else:
            log.info("Handling request")

        start_time = time.perf_counter()
        try:
            response = await next_()
        except Exception as e:
            log.warning(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        if self.log_payloads:
            log.info("Request handled", response=_describe(response), duration_ms=duration_ms)
        else:
            log.info("Request handled", duration_ms=duration_ms)
        return response
