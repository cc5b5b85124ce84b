"""
Unit tests for the Redis circuit breaker.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from cacheaside.infrastructure.redis.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    RedisCircuitBreaker,
)
from cacheaside.infrastructure.redis.exceptions import RedisCircuitBreakerOpenException


@pytest.fixture
def circuit_breaker(clock):
    return RedisCircuitBreaker(
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout=30.0),
        clock=clock,
    )


class TestRedisCircuitBreaker:
    """Test circuit breaker state transitions."""

    @pytest.mark.asyncio
    async def test_success_passes_through(self, circuit_breaker):
        """Successful calls return their result."""
        assert await circuit_breaker.call(AsyncMock(return_value="ok")) == "ok"
        assert circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, circuit_breaker):
        """Consecutive failures open the circuit."""
        failing = AsyncMock(side_effect=ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)

        assert circuit_breaker.state == CircuitState.OPEN
        with pytest.raises(RedisCircuitBreakerOpenException):
            await circuit_breaker.call(failing)
        assert failing.await_count == 2
        assert circuit_breaker.metrics.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_recovers_after_timeout(self, circuit_breaker, clock):
        """A successful call after the recovery timeout closes the circuit."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)

        clock.advance(30)
        assert await circuit_breaker.call(AsyncMock(return_value=1)) == 1
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_recovery_call_reopens(self, circuit_breaker, clock):
        """A failing recovery call sends the circuit straight back to OPEN."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)

        clock.advance(30)
        with pytest.raises(ConnectionError):
            await circuit_breaker.call(failing)

        assert circuit_breaker.state == CircuitState.OPEN
        assert circuit_breaker.metrics.circuit_opens == 2

    @pytest.mark.asyncio
    async def test_half_open_admits_one_call_at_a_time(self, circuit_breaker, clock):
        """While a recovery call is running, other calls are rejected."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)
        clock.advance(30)

        release = asyncio.Event()

        async def slow_recovery():
            await release.wait()
            return "ok"

        first = asyncio.ensure_future(circuit_breaker.call(slow_recovery))
        await asyncio.sleep(0)
        assert circuit_breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(RedisCircuitBreakerOpenException):
            await circuit_breaker.call(AsyncMock(return_value="other"))

        release.set()
        assert await first == "ok"
        assert circuit_breaker.state == CircuitState.CLOSED
        assert await circuit_breaker.call(AsyncMock(return_value="next")) == "next"

    @pytest.mark.asyncio
    async def test_unrelated_error_in_half_open_frees_the_slot(self, circuit_breaker, clock):
        """A recovery call failing outside the failure set lets the next one through."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)
        clock.advance(30)

        with pytest.raises(ValueError):
            await circuit_breaker.call(AsyncMock(side_effect=ValueError("bad")))

        assert await circuit_breaker.call(AsyncMock(return_value=1)) == 1
        assert circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_unrelated_errors_do_not_count(self, circuit_breaker):
        """Errors outside the failure set pass through without tripping."""
        for _ in range(3):
            with pytest.raises(ValueError):
                await circuit_breaker.call(AsyncMock(side_effect=ValueError("bad")))

        assert circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset(self, circuit_breaker):
        """Manual reset closes the circuit."""
        failing = AsyncMock(side_effect=ConnectionError("down"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await circuit_breaker.call(failing)

        await circuit_breaker.reset()

        assert circuit_breaker.get_status()["state"] == "closed"
