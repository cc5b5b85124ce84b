"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety and business rules for cache keys, expiration policies
and cache events.
"""

import hashlib
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import quote
from uuid import UUID


class CachePriority(int, Enum):
    """Eviction priority of a cache entry under capacity pressure."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    NEVER_REMOVE = 3


class CacheEventType(str, Enum):
    """Kinds of events emitted by the cache-aside coordinator."""

    HIT = "hit"
    MISS = "miss"
    SET = "set"
    BYPASS = "bypass"
    INVALIDATE = "invalidate"
    ERROR = "error"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys are opaque and case-sensitive. Singular resources use
    ``<entity>:<id>``, collections use the plural name, optionally followed by
    ``:<param>=<value>`` segments for filtered or paged views.
    """

    value: str

    MAX_LENGTH = 250

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > self.MAX_LENGTH:
            raise ValueError(f"Cache key too long (max {self.MAX_LENGTH} characters)")

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @classmethod
    def entity(cls, name: str, entity_id: Union[str, int, UUID]) -> "CacheKey":
        """Create a singular resource key, e.g. ``product:42``."""
        if not name:
            raise ValueError("Entity name cannot be empty")
        return cls(f"{name}:{entity_id}")

    @classmethod
    def collection(cls, name: str, **params: Any) -> "CacheKey":
        """
        Create a collection key.

        Without parameters this is the bare collection name (``products``).
        Parameters set to ``None`` are left out; the rest are sorted by name
        and URL-quoted so that the same view always maps to the same key.
        When the result would exceed ``MAX_LENGTH`` the parameter segments are
        replaced by their SHA-256 digest (``products:h=<hex>``), which keeps the
        collection prefix.
        """
        if not name:
            raise ValueError("Collection name cannot be empty")

        segments = [
            f"{param}={quote(str(value), safe='')}"
            for param, value in sorted(params.items())
            if value is not None
        ]
        if not segments:
            return cls(name)

        value = ":".join([name, *segments])
        if len(value) > cls.MAX_LENGTH:
            digest = hashlib.sha256(":".join(segments).encode("utf-8")).hexdigest()
            value = f"{name}:h={digest}"
        return cls(value)

    @staticmethod
    def collection_prefix(name: str) -> str:
        """Prefix shared by every parameterised key of a collection."""
        return f"{name}:"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CachePolicy:
    """
    Expiration and eviction policy applied when an entry is written.

    ``absolute_minutes`` caps the lifetime since the write. ``sliding_minutes``
    is the idle window since the last access; ``None`` disables sliding
    expiration. The sliding window never outlives the absolute lifetime.
    """

    sliding_minutes: Optional[float] = 30
    absolute_minutes: float = 60
    priority: CachePriority = CachePriority.NORMAL
    weight: Optional[int] = None
    bypass: bool = False

    def __post_init__(self) -> None:
        """Validate policy values."""
        if self.absolute_minutes < 0:
            raise ValueError("Absolute expiration cannot be negative")
        if self.sliding_minutes is not None and self.sliding_minutes < 0:
            raise ValueError("Sliding expiration cannot be negative")
        if self.weight is not None and self.weight < 1:
            raise ValueError("Entry weight must be at least 1")

    @property
    def absolute(self) -> timedelta:
        """Absolute lifetime."""
        return timedelta(minutes=self.absolute_minutes)

    @property
    def sliding(self) -> Optional[timedelta]:
        """Sliding window, clamped to the absolute lifetime."""
        if self.sliding_minutes is None:
            return None
        return min(timedelta(minutes=self.sliding_minutes), self.absolute)

    @property
    def effective_weight(self) -> int:
        """Weight charged against a bounded store; unweighted entries count as 1."""
        return self.weight or 1

    def with_overrides(
        self,
        sliding_minutes: Optional[float] = None,
        absolute_minutes: Optional[float] = None,
        bypass: Optional[bool] = None,
    ) -> "CachePolicy":
        """
        Apply per-call overrides.

        Zero or ``None`` minute overrides keep the current value.
        """
        changes: dict = {}
        if sliding_minutes:
            changes["sliding_minutes"] = sliding_minutes
        if absolute_minutes:
            changes["absolute_minutes"] = absolute_minutes
        if bypass is not None:
            changes["bypass"] = bypass
        return replace(self, **changes) if changes else self

    # Common policy presets
    @classmethod
    def default(cls) -> "CachePolicy":
        """Default policy (30 minutes sliding, 1 hour absolute)."""
        return cls()

    @classmethod
    def entity(cls) -> "CachePolicy":
        """Single entity policy (5 minutes sliding, 50 minutes absolute)."""
        return cls(sliding_minutes=5, absolute_minutes=50)

    @classmethod
    def collection(cls) -> "CachePolicy":
        """Collection policy (2 minutes sliding, 20 minutes absolute)."""
        return cls(
            sliding_minutes=2,
            absolute_minutes=20,
            priority=CachePriority.NEVER_REMOVE,
        )

    @classmethod
    def bypassed(cls) -> "CachePolicy":
        """Policy that skips the cache entirely."""
        return cls(bypass=True)


@dataclass(frozen=True)
class CacheEvent:
    """Observability event emitted for each cache decision."""

    type: CacheEventType
    key: str
    policy: Optional[CachePolicy] = None
    detail: Optional[str] = None
