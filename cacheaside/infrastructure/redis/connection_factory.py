"""
Redis Connection Factory

Connection pool management for the remote cache store.
Creates the pool lazily, verifies it with a PING and shares one client
between callers.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from ...core.config import Settings
from .circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from .exceptions import (
    RedisConfigurationException,
    RedisConnectionException,
)

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for creating and sharing a pooled Redis client.

    Payloads are raw bytes, so responses are not decoded.
    """

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 10,
        connection_timeout: float = 5.0,
        operation_timeout: float = 5.0,
    ):
        parsed_url = urlparse(redis_url)
        if parsed_url.scheme not in ("redis", "rediss", "unix"):
            raise RedisConfigurationException(
                message="REDIS_URL must use redis://, rediss:// or unix://",
                config_key="REDIS_URL",
                config_value=redis_url,
            )

        self.redis_url = redis_url
        self.max_connections = max_connections
        self.connection_timeout = connection_timeout
        self.operation_timeout = operation_timeout
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisConnectionFactory":
        """Create factory from application settings."""
        return cls(
            redis_url=settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            connection_timeout=settings.REDIS_CONNECTION_TIMEOUT,
            operation_timeout=settings.REDIS_OPERATION_TIMEOUT,
        )

    async def get_client(self) -> Redis:
        """
        Return the shared client, creating the pool on first use.

        Raises:
            RedisConnectionException: If the server cannot be reached
        """
        if self._client is not None:
            return self._client

        async with self._lock:
            if self._client is not None:
                return self._client

            pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                socket_connect_timeout=self.connection_timeout,
                socket_timeout=self.operation_timeout,
                decode_responses=False,
            )
            client = Redis(connection_pool=pool)

            try:
                await client.ping()
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                await pool.disconnect()
                logger.error(
                    "Redis connection test failed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                raise RedisConnectionException(
                    message="Redis connection test failed",
                    operation="ping",
                    original_error=e,
                )

            self._pool = pool
            self._client = client
            parsed_url = urlparse(self.redis_url)
            logger.info(
                "Redis connection pool initialized",
                extra={
                    "host": parsed_url.hostname,
                    "port": parsed_url.port,
                    "max_connections": self.max_connections,
                },
            )
            return client

    def create_circuit_breaker(
        self, failure_threshold: int = 5, recovery_timeout: float = 60.0
    ) -> RedisCircuitBreaker:
        """Circuit breaker counting Redis transport errors as failures."""
        return RedisCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                operation_timeout=self.operation_timeout,
                failure_exceptions=(
                    RedisConnectionError,
                    RedisTimeoutError,
                    RedisConnectionException,
                    ConnectionError,
                    TimeoutError,
                    asyncio.TimeoutError,
                    OSError,
                ),
            )
        )

    async def close(self) -> None:
        """Close the shared client and its pool."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
            if self._pool is not None:
                await self._pool.disconnect()
            self._client = None
            self._pool = None
            logger.info("Redis connection pool closed")
