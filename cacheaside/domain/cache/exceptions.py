"""
Cache Domain Exceptions

Exceptions raised by cache stores and the serializer.
Every cache failure carries a machine readable error code and details, and
keeps the underlying error as its cause.
"""

from typing import Any, Dict, Optional


class CacheException(Exception):
    """Base exception for cache-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CacheUnavailableException(CacheException):
    """Raised when the cache store cannot be reached."""

    def __init__(
        self,
        message: str = "Cache store unavailable",
        error_code: str = "CACHE_UNAVAILABLE",
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        details = dict(details or {})
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code=error_code, details=details)
        if original_error:
            self.__cause__ = original_error


class CacheCapacityExceededException(CacheException):
    """Raised when a bounded store cannot make room for a new entry."""

    def __init__(self, key: str, weight: int, size_limit: int, current_size: int):
        super().__init__(
            message=f"Cache capacity exceeded while storing '{key}'",
            error_code="CACHE_CAPACITY_EXCEEDED",
            details={
                "key": key,
                "weight": weight,
                "size_limit": size_limit,
                "current_size": current_size,
            },
        )


class CacheSerializationException(CacheException):
    """Raised when a value cannot be encoded for or decoded from the store."""

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Cache value {operation} failed",
            error_code="CACHE_SERIALIZATION_ERROR",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error
