"""
Redis Circuit Breaker

Stops calling Redis after repeated transport failures so that cache lookups
fail fast while the server is down, and tries it again after a recovery
timeout.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .exceptions import RedisCircuitBreakerOpenException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Probing for recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    # Consecutive failures before opening
    failure_threshold: int = 5

    # Seconds to wait in OPEN before probing
    recovery_timeout: float = 60.0

    # Successful trial calls needed to close again
    success_threshold: int = 1

    # Timeout for individual operations
    operation_timeout: float = 5.0

    # Exception types counted as failures
    failure_exceptions: tuple = (
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
        OSError,
    )


@dataclass
class CircuitBreakerMetrics:
    """Call counters for monitoring."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0

    @property
    def failure_rate(self) -> float:
        """Share of executed calls that failed."""
        executed = self.successful_calls + self.failed_calls
        if executed == 0:
            return 0.0
        return self.failed_calls / executed


class RedisCircuitBreaker:
    """Circuit breaker guarding calls to a Redis server."""

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._clock = clock
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``func`` under circuit breaker protection.

        Raises:
            RedisCircuitBreakerOpenException: If the circuit is open
            asyncio.TimeoutError: If the call exceeds ``operation_timeout``
            Exception: Original exception from the call
        """
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    self.metrics.rejected_calls += 1
                    raise RedisCircuitBreakerOpenException()
                self.state = CircuitState.HALF_OPEN
                self.success_count = 0
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN",
                    extra={"failure_count": self.failure_count},
                )

            # HALF_OPEN lets one trial call through at a time
            is_trial = self.state == CircuitState.HALF_OPEN
            if is_trial:
                if self._trial_in_flight:
                    self.metrics.rejected_calls += 1
                    raise RedisCircuitBreakerOpenException()
                self._trial_in_flight = True

        try:
            try:
                result = await asyncio.wait_for(
                    func(), timeout=self.config.operation_timeout
                )
            except self.config.failure_exceptions as e:
                await self._record_failure(type(e).__name__)
                raise

            await self._record_success()
            return result
        finally:
            if is_trial:
                self._trial_in_flight = False

    async def _record_success(self) -> None:
        async with self._lock:
            self.metrics.successful_calls += 1

            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    self.success_count = 0
                    self.opened_at = None
                    logger.info("Circuit breaker closed after successful recovery")
            else:
                self.failure_count = 0

    async def _record_failure(self, failure_type: str) -> None:
        async with self._lock:
            self.metrics.failed_calls += 1
            self.failure_count += 1

            if self.state == CircuitState.HALF_OPEN or (
                self.state == CircuitState.CLOSED
                and self.failure_count >= self.config.failure_threshold
            ):
                self.state = CircuitState.OPEN
                self.opened_at = self._clock()
                self.metrics.circuit_opens += 1
                logger.warning(
                    "Circuit breaker opened",
                    extra={
                        "failure_type": failure_type,
                        "failure_count": self.failure_count,
                        "threshold": self.config.failure_threshold,
                    },
                )

    def _should_attempt_reset(self) -> bool:
        if self.opened_at is None:
            return True
        return self._clock() - self.opened_at >= self.config.recovery_timeout

    def get_status(self) -> Dict[str, Any]:
        """Current circuit breaker status for monitoring."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "rejected_calls": self.metrics.rejected_calls,
                "failure_rate": self.metrics.failure_rate,
                "circuit_opens": self.metrics.circuit_opens,
            },
        }

    async def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        async with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.opened_at = None
            self._trial_in_flight = False
            logger.info("Circuit breaker manually reset to CLOSED state")
