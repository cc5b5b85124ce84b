"""
Redis Infrastructure Module

Connection pooling, circuit breaker protection and the exception mapping
used by the Redis cache store.
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerMetrics,
    CircuitState,
    RedisCircuitBreaker,
)
from .connection_factory import RedisConnectionFactory
from .exceptions import (
    RedisCircuitBreakerOpenException,
    RedisConfigurationException,
    RedisConnectionException,
    RedisOperationTimeoutException,
)

__all__ = [
    # Connection management
    "RedisConnectionFactory",
    # Circuit breaker
    "RedisCircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitBreakerMetrics",
    # Exceptions
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "RedisCircuitBreakerOpenException",
    "RedisConfigurationException",
]
