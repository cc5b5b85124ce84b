"""
In-process Cache Store

Bounded local store holding live Python values.
Capacity is measured in entry weight. When a write does not fit, expired
entries are dropped first, then live entries are evicted by priority
(lowest first) and, within a priority, by the soonest deadline.
Entries marked NEVER_REMOVE are never evicted for capacity but still expire.
"""

import asyncio
import logging
import time
import weakref
from typing import Any, Callable, Dict, List, Optional

from opentelemetry import trace

from ...domain.cache.entities import CacheEntry
from ...domain.cache.exceptions import CacheCapacityExceededException
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import CacheKey, CachePolicy, CachePriority

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class MemoryCacheStore(CacheStore):
    """Local bounded cache store with passive expiration."""

    refresh_on_hit = False

    def __init__(
        self,
        size_limit: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if size_limit < 1:
            raise ValueError("size_limit must be at least 1")
        self.size_limit = size_limit
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._current_size = 0
        self._evictions = 0
        self._key_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @property
    def current_size(self) -> int:
        """Total weight of the entries held."""
        return self._current_size

    def __len__(self) -> int:
        return len(self._entries)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    def _discard(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._current_size -= entry.weight
        return entry

    async def get(
        self, key: CacheKey, value_type: Optional[Any] = None
    ) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, extending its sliding window."""
        async with self._lock_for(key.value):
            entry = self._entries.get(key.value)
            if entry is None:
                return None

            now = self._clock()
            if entry.is_expired(now):
                self._discard(key.value)
                logger.debug("Cache entry expired", extra={"key": key.value})
                return None

            entry.touch(now)
            return entry

    async def set(self, key: CacheKey, value: Any, policy: CachePolicy) -> None:
        """Store ``value``, evicting lower priority entries when full."""
        with tracer.start_as_current_span("memory_cache_store.set") as span:
            span.set_attribute("cache.key", key.value)
            async with self._lock_for(key.value):
                now = self._clock()
                entry = CacheEntry.create(key, value, policy, now)
                span.set_attribute("cache.weight", entry.weight)

                # The replaced entry no longer counts against capacity.
                self._discard(key.value)
                try:
                    self._make_room(key.value, entry.weight, now)
                except CacheCapacityExceededException as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                    raise

                self._entries[key.value] = entry
                self._current_size += entry.weight

    async def remove(self, key: CacheKey) -> None:
        """Remove an entry if present."""
        async with self._lock_for(key.value):
            self._discard(key.value)

    async def refresh(self, key: CacheKey) -> None:
        """Extend the sliding window of a live entry."""
        async with self._lock_for(key.value):
            entry = self._entries.get(key.value)
            if entry is None:
                return
            now = self._clock()
            if entry.is_expired(now):
                self._discard(key.value)
                return
            entry.touch(now)

    async def remove_by_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``."""
        removed = 0
        for key in [k for k in self._entries if k.startswith(prefix)]:
            if self._discard(key) is not None:
                removed += 1
        return removed

    def _make_room(self, key: str, weight: int, now: float) -> None:
        """Free enough capacity for ``weight`` or raise without evicting."""
        if weight > self.size_limit:
            raise CacheCapacityExceededException(
                key=key,
                weight=weight,
                size_limit=self.size_limit,
                current_size=self._current_size,
            )

        if self._current_size + weight <= self.size_limit:
            return

        for expired_key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            self._discard(expired_key)

        overflow = self._current_size + weight - self.size_limit
        if overflow <= 0:
            return

        candidates: List[CacheEntry] = sorted(
            (
                e
                for e in self._entries.values()
                if e.priority != CachePriority.NEVER_REMOVE
            ),
            key=lambda e: (e.priority, e.expires_at),
        )

        victims: List[CacheEntry] = []
        reclaimed = 0
        for candidate in candidates:
            if reclaimed >= overflow:
                break
            victims.append(candidate)
            reclaimed += candidate.weight

        if reclaimed < overflow:
            raise CacheCapacityExceededException(
                key=key,
                weight=weight,
                size_limit=self.size_limit,
                current_size=self._current_size,
            )

        for victim in victims:
            self._discard(victim.key.value)
            self._evictions += 1
            logger.debug(
                "Cache entry evicted",
                extra={
                    "key": victim.key.value,
                    "priority": victim.priority.name,
                    "weight": victim.weight,
                },
            )

    async def health_check(self) -> Dict[str, Any]:
        """Report occupancy of the local store."""
        return {
            "status": "healthy",
            "backend": "memory",
            "entries": len(self._entries),
            "current_size": self._current_size,
            "size_limit": self.size_limit,
            "evictions": self._evictions,
        }

    async def close(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._current_size = 0
