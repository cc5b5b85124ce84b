"""
Cacheable Operations

Pipeline behavior that serves cacheable requests through the cache-aside
coordinator, plus a function decorator offering the same for plain coroutine
functions. The wrapped handler or function never knows caching exists.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, ClassVar, Optional

import structlog

from ...domain.cache.value_objects import CacheKey, CachePolicy
from ..pipeline import NextHandler, PipelineBehavior, Request
from .coordinator import CacheAsideCoordinator

logger = structlog.get_logger()


@dataclass(frozen=True, kw_only=True)
class CacheableRequest(Request, ABC):
    """
    A read request whose response may be served from the cache.

    Subclasses provide ``cache_key()`` and may set ``base_policy`` and
    ``response_type`` (used to rebuild responses from a serialized store).
    Per-call expiration overrides of zero or ``None`` keep the policy value.
    """

    bypass_cache: bool = False
    sliding_expiration_minutes: Optional[float] = None
    absolute_expiration_minutes: Optional[float] = None

    base_policy: ClassVar[Optional[CachePolicy]] = None
    response_type: ClassVar[Any] = None

    @abstractmethod
    def cache_key(self) -> CacheKey:
        """Key identifying this request's response."""
        pass

    def cache_policy(self, default: CachePolicy) -> CachePolicy:
        """Effective policy for this call."""
        return (self.base_policy or default).with_overrides(
            sliding_minutes=self.sliding_expiration_minutes,
            absolute_minutes=self.absolute_expiration_minutes,
            bypass=self.bypass_cache,
        )


class CachingBehavior(PipelineBehavior):
    """Serves ``CacheableRequest`` responses from the cache when possible."""

    def __init__(self, coordinator: CacheAsideCoordinator):
        self.coordinator = coordinator

    async def handle(self, request: Request, next_: NextHandler) -> Any:
        if not isinstance(request, CacheableRequest) or request.bypass_cache:
            return await next_()

        try:
            key = request.cache_key()
        except ValueError as e:
            # No valid key means no caching for this call, never a failed read
            logger.warning(
                "cache_key_rejected", request=type(request).__name__, error=str(e)
            )
            return await next_()

        return await self.coordinator.get_or_compute(
            key,
            request.cache_policy(self.coordinator.default_policy),
            next_,
            value_type=request.response_type,
        )


def cacheable(
    coordinator: CacheAsideCoordinator,
    key_builder: Callable[..., CacheKey],
    policy: Optional[CachePolicy] = None,
    value_type: Optional[Any] = None,
):
    """
    Decorator caching a coroutine function's result under ``key_builder(*args, **kwargs)``.

    Example:
        @cacheable(coordinator, lambda product_id: CacheKey.entity("product", product_id))
        async def load_product(product_id): ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await coordinator.get_or_compute(
                key_builder(*args, **kwargs),
                policy,
                lambda: func(*args, **kwargs),
                value_type=value_type,
            )

        wrapper.cache_coordinator = coordinator  # type: ignore[attr-defined]
        return wrapper

    return decorator
