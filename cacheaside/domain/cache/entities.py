"""
Cache Domain Entities

Core entities for cache management.
Encapsulates the expiration rules of a single cache entry and the running
statistics kept by the cache-aside coordinator.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .value_objects import (
    CacheEvent,
    CacheEventType,
    CacheKey,
    CachePolicy,
    CachePriority,
)


@dataclass
class CacheEntry:
    """
    Cache entry entity.

    Timestamps are seconds on the owning store's clock. The entry is gone as
    soon as either deadline passes. A sliding refresh moves the sliding
    deadline forward but never past the absolute deadline.
    """

    key: CacheKey
    value: Any
    created_at: float
    absolute_expires_at: float
    sliding_window: Optional[float] = None
    sliding_expires_at: Optional[float] = None
    priority: CachePriority = CachePriority.NORMAL
    weight: int = 1

    @classmethod
    def create(
        cls, key: CacheKey, value: Any, policy: CachePolicy, now: float
    ) -> "CacheEntry":
        """Create a new entry under the given policy."""
        absolute_expires_at = now + policy.absolute.total_seconds()

        sliding_window = None
        sliding_expires_at = None
        if policy.sliding is not None:
            sliding_window = policy.sliding.total_seconds()
            sliding_expires_at = now + sliding_window

        return cls(
            key=key,
            value=value,
            created_at=now,
            absolute_expires_at=absolute_expires_at,
            sliding_window=sliding_window,
            sliding_expires_at=sliding_expires_at,
            priority=policy.priority,
            weight=policy.effective_weight,
        )

    @property
    def expires_at(self) -> float:
        """The earlier of the two deadlines."""
        if self.sliding_expires_at is None:
            return self.absolute_expires_at
        return min(self.absolute_expires_at, self.sliding_expires_at)

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired at ``now``."""
        return now >= self.expires_at

    def touch(self, now: float) -> None:
        """Record an access, extending the sliding deadline."""
        if self.sliding_window is None:
            return
        self.sliding_expires_at = min(
            now + self.sliding_window, self.absolute_expires_at
        )

    def remaining_lifetime(self, now: float) -> float:
        """Seconds until the entry expires; zero when already expired."""
        return max(0.0, self.expires_at - now)


@dataclass
class CacheStatistics:
    """Running counters of cache decisions."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    bypasses: int = 0
    invalidations: int = 0
    errors: int = 0
    _COUNTERS = {
        CacheEventType.HIT: "hits",
        CacheEventType.MISS: "misses",
        CacheEventType.SET: "sets",
        CacheEventType.BYPASS: "bypasses",
        CacheEventType.INVALIDATE: "invalidations",
        CacheEventType.ERROR: "errors",
    }

    def record(self, event: CacheEvent) -> None:
        """Count an event."""
        counter = self._COUNTERS[event.type]
        setattr(self, counter, getattr(self, counter) + 1)

    @property
    def hit_rate(self) -> float:
        """Share of lookups served from the cache."""
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return self.hits / lookups

    def to_dict(self) -> Dict[str, Any]:
        """Statistics as a plain dictionary for monitoring."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "bypasses": self.bypasses,
            "invalidations": self.invalidations,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 4),
        }

    def reset(self) -> None:
        """Reset all counters to zero."""
        for counter in self._COUNTERS.values():
            setattr(self, counter, 0)
