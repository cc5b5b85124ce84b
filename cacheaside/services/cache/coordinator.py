"""
Cache-Aside Coordinator

Read-through orchestration over a cache store:
look the key up, return hits, and on a miss compute the value from the
system of record and store it under the requested policy. Cache failures
never fail the read; they are reported and the value is computed instead.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog
from opentelemetry import trace

from ...domain.cache.entities import CacheEntry, CacheStatistics
from ...domain.cache.exceptions import (
    CacheException,
    CacheSerializationException,
)
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import (
    CacheEvent,
    CacheEventType,
    CacheKey,
    CachePolicy,
)

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

Compute = Callable[[], Union[Any, Awaitable[Any]]]
EventSink = Callable[[CacheEvent], None]


def log_cache_event(event: CacheEvent) -> None:
    """Default event sink writing cache decisions to the structured log."""
    if event.type == CacheEventType.ERROR:
        logger.warning("cache_error", key=event.key, detail=event.detail)
    else:
        logger.debug(f"cache_{event.type.value}", key=event.key)


class CacheAsideCoordinator:
    """
    Cache-aside read path and explicit invalidation.

    Concurrent misses for the same key each compute and each store their
    result unless ``single_flight`` is enabled, in which case they share one
    in-flight computation.
    """

    def __init__(
        self,
        store: CacheStore,
        default_policy: Optional[CachePolicy] = None,
        event_sink: Optional[EventSink] = log_cache_event,
        single_flight: bool = False,
    ):
        self.store = store
        self.default_policy = default_policy or CachePolicy.default()
        self.event_sink = event_sink
        self.single_flight = single_flight
        self.statistics = CacheStatistics()
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def get_or_compute(
        self,
        key: Union[CacheKey, str],
        policy: Optional[CachePolicy],
        compute: Compute,
        value_type: Optional[Any] = None,
    ) -> Any:
        """
        Return the cached value for ``key`` or compute and cache it.

        Args:
            key: Cache key
            policy: Expiration policy; ``None`` uses the coordinator default
            compute: Callable (sync or async) producing the value on a miss
            value_type: Type used to rebuild values from serialized stores

        Returns:
            The cached or freshly computed value. ``None`` from ``compute``
            is returned but never cached.

        Raises:
            Exception: Whatever ``compute`` raises
        """
        key = key if isinstance(key, CacheKey) else CacheKey(key)
        policy = policy or self.default_policy

        with tracer.start_as_current_span("cache_aside.get_or_compute") as span:
            span.set_attribute("cache.key", key.value)

            if policy.bypass:
                span.set_attribute("cache.outcome", "bypass")
                self._emit(CacheEventType.BYPASS, key, policy)
                return await self._call(compute)

            entry = await self._lookup(key, value_type)
            if entry is not None:
                span.set_attribute("cache.outcome", "hit")
                self._emit(CacheEventType.HIT, key, policy)
                if self.store.refresh_on_hit:
                    await self._refresh(key)
                return entry.value

            span.set_attribute("cache.outcome", "miss")
            self._emit(CacheEventType.MISS, key, policy)

            if not self.single_flight:
                return await self._load(key, policy, compute)

            future = self._in_flight.get(key.value)
            if future is None:
                future = asyncio.ensure_future(self._load(key, policy, compute))
                self._in_flight[key.value] = future
                future.add_done_callback(
                    lambda _, k=key.value: self._in_flight.pop(k, None)
                )
            else:
                span.set_attribute("cache.coalesced", True)
            return await asyncio.shield(future)

    async def invalidate(self, key: Union[CacheKey, str]) -> bool:
        """
        Remove an entry. Idempotent and never raises.

        Returns:
            False if the store could not be reached
        """
        key = key if isinstance(key, CacheKey) else CacheKey(key)
        with tracer.start_as_current_span("cache_aside.invalidate") as span:
            span.set_attribute("cache.key", key.value)
            try:
                await self.store.remove(key)
            except CacheException as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                self._emit(CacheEventType.ERROR, key, detail=f"remove: {e}")
                return False

            self._emit(CacheEventType.INVALIDATE, key)
            return True

    async def invalidate_prefix(self, prefix: str) -> Optional[int]:
        """Remove every entry under ``prefix``; returns None when unreachable."""
        with tracer.start_as_current_span("cache_aside.invalidate_prefix") as span:
            span.set_attribute("cache.prefix", prefix)
            try:
                removed = await self.store.remove_by_prefix(prefix)
            except CacheException as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                self._emit(CacheEventType.ERROR, prefix, detail=f"remove_by_prefix: {e}")
                return None

            span.set_attribute("cache.removed", removed)
            self._emit(CacheEventType.INVALIDATE, prefix, detail=f"removed={removed}")
            return removed

    async def health_check(self) -> Dict[str, Any]:
        """Store health merged with hit/miss statistics."""
        try:
            store_status = await self.store.health_check()
        except CacheException as e:
            store_status = {"status": "unhealthy", "error": e.message}
        return {
            "store": store_status,
            "statistics": self.statistics.to_dict(),
            "single_flight": self.single_flight,
            "in_flight": len(self._in_flight),
        }

    async def _load(self, key: CacheKey, policy: CachePolicy, compute: Compute) -> Any:
        value = await self._call(compute)
        if value is None:
            return None

        try:
            await self.store.set(key, value, policy)
        except CacheException as e:
            self._emit(CacheEventType.ERROR, key, policy, detail=f"set: {e}")
        else:
            self._emit(CacheEventType.SET, key, policy)
        return value

    async def _lookup(
        self, key: CacheKey, value_type: Optional[Any]
    ) -> Optional[CacheEntry]:
        try:
            return await self.store.get(key, value_type)
        except CacheSerializationException as e:
            # Unreadable payload: drop it and recompute.
            self._emit(CacheEventType.ERROR, key, detail=f"decode: {e}")
            await self.invalidate(key)
            return None
        except CacheException as e:
            self._emit(CacheEventType.ERROR, key, detail=f"get: {e}")
            return None

    async def _refresh(self, key: CacheKey) -> None:
        try:
            await self.store.refresh(key)
        except CacheException as e:
            self._emit(CacheEventType.ERROR, key, detail=f"refresh: {e}")

    @staticmethod
    async def _call(compute: Compute) -> Any:
        result = compute()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _emit(
        self,
        event_type: CacheEventType,
        key: Union[CacheKey, str],
        policy: Optional[CachePolicy] = None,
        detail: Optional[str] = None,
    ) -> None:
        event = CacheEvent(type=event_type, key=str(key), policy=policy, detail=detail)
        self.statistics.record(event)
        if self.event_sink is None:
            return
        try:
            self.event_sink(event)
        except Exception:
            logger.exception("cache_event_sink_failed", key=event.key)
