"""
Unit tests for the request pipeline.
"""

from dataclasses import dataclass
from typing import List

import pytest

from cacheaside.services.pipeline import (
    HandlerNotFoundError,
    LoggingBehavior,
    Mediator,
    Notification,
    NotificationHandler,
    PipelineBehavior,
    Request,
    RequestHandler,
)


@dataclass(frozen=True)
class Ping(Request):
    payload: str = "ping"


@dataclass(frozen=True)
class LoudPing(Ping):
    pass


@dataclass(frozen=True)
class Pinged(Notification):
    payload: str


class PingHandler(RequestHandler):
    async def handle(self, request: Ping) -> str:
        return f"pong:{request.payload}"


class RecordingBehavior(PipelineBehavior):
    def __init__(self, name: str, trail: List[str]):
        self.name = name
        self.trail = trail

    async def handle(self, request, next_):
        self.trail.append(f"{self.name}:before")
        response = await next_()
        self.trail.append(f"{self.name}:after")
        return response


class RecordingSubscriber(NotificationHandler):
    def __init__(self, trail: List[str], name: str):
        self.trail = trail
        self.name = name

    async def handle(self, notification: Pinged) -> None:
        self.trail.append(f"{self.name}:{notification.payload}")


class TestMediator:
    """Test request dispatch and notifications."""

    @pytest.mark.asyncio
    async def test_send_dispatches_to_handler(self):
        """The registered handler produces the response."""
        mediator = Mediator()
        mediator.register(Ping, PingHandler())

        assert await mediator.send(Ping("a")) == "pong:a"

    @pytest.mark.asyncio
    async def test_behaviors_run_outermost_first(self):
        """The first behavior wraps all the others."""
        trail: List[str] = []
        mediator = Mediator(
            behaviors=[RecordingBehavior("outer", trail), RecordingBehavior("inner", trail)]
        )
        mediator.register(Ping, PingHandler())

        await mediator.send(Ping())

        assert trail == ["outer:before", "inner:before", "inner:after", "outer:after"]

    @pytest.mark.asyncio
    async def test_handler_resolved_through_base_class(self):
        """Subclassed requests fall back to the base request's handler."""
        mediator = Mediator()
        mediator.register(Ping, PingHandler())

        assert await mediator.send(LoudPing("b")) == "pong:b"

    @pytest.mark.asyncio
    async def test_missing_handler(self):
        """Unregistered requests raise HandlerNotFoundError."""
        with pytest.raises(HandlerNotFoundError) as exc_info:
            await Mediator().send(Ping())

        assert exc_info.value.request_type is Ping

    @pytest.mark.asyncio
    async def test_publish_reaches_every_subscriber_in_order(self):
        """Notifications are delivered in subscription order."""
        trail: List[str] = []
        mediator = Mediator()
        mediator.subscribe(Pinged, RecordingSubscriber(trail, "first"))
        mediator.subscribe(Pinged, RecordingSubscriber(trail, "second"))

        await mediator.publish(Pinged("x"))

        assert trail == ["first:x", "second:x"]

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        """Publishing with nobody listening is a no-op."""
        await Mediator().publish(Pinged("x"))


class TestLoggingBehavior:
    """Test request logging."""

    @pytest.mark.asyncio
    async def test_returns_response(self):
        """Logging does not change the response."""
        mediator = Mediator(behaviors=[LoggingBehavior()])
        mediator.register(Ping, PingHandler())

        assert await mediator.send(Ping("c")) == "pong:c"

    @pytest.mark.asyncio
    async def test_failures_propagate(self):
        """Handler errors are logged and re-raised."""

        class FailingHandler(RequestHandler):
            async def handle(self, request):
                raise ValueError("boom")

        mediator = Mediator(behaviors=[LoggingBehavior(log_payloads=False)])
        mediator.register(Ping, FailingHandler())

        with pytest.raises(ValueError):
            await mediator.send(Ping())
