"""
Redis Infrastructure Exceptions

Redis-specific failures of the remote cache store.
Transport failures are cache-unavailable conditions so callers can fall back
to the system of record; configuration errors are not.
"""

from typing import Any, Optional

from ...domain.cache.exceptions import CacheException, CacheUnavailableException


class RedisConnectionException(CacheUnavailableException):
    """Raised when Redis connection fails or is lost."""

    def __init__(
        self,
        message: str = "Redis connection failed",
        operation: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            error_code="REDIS_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
        )


class RedisOperationTimeoutException(CacheUnavailableException):
    """Raised when Redis operation times out."""

    def __init__(
        self, operation: str, timeout_seconds: float, key: Optional[str] = None
    ):
        details = {"operation": operation, "timeout_seconds": timeout_seconds}
        if key:
            details["key"] = key

        super().__init__(
            message=f"Redis operation '{operation}' timed out after {timeout_seconds}s",
            error_code="REDIS_TIMEOUT_ERROR",
            details=details,
        )


class RedisCircuitBreakerOpenException(CacheUnavailableException):
    """Raised when Redis circuit breaker is open."""

    def __init__(
        self, message: str = "Redis circuit breaker is open - service unavailable"
    ):
        super().__init__(
            message=message,
            error_code="REDIS_CIRCUIT_BREAKER_OPEN",
            details={"service_status": "unavailable"},
        )


class RedisConfigurationException(CacheException):
    """Raised when Redis configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message, error_code="REDIS_CONFIGURATION_ERROR", details=details
        )
