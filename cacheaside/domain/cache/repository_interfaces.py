"""
Cache Repository Interfaces

Abstract store contract for cache persistence implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .entities import CacheEntry
from .value_objects import CacheKey, CachePolicy


class CacheStore(ABC):
    """
    Abstract key/value store holding cache entries.

    Implementations raise ``CacheUnavailableException`` for transport
    failures and must never report a failed lookup as a hit.
    """

    # Whether the coordinator should call refresh() after a hit. Stores that
    # extend the sliding window themselves inside get() leave this off.
    refresh_on_hit: bool = False

    @abstractmethod
    async def get(
        self, key: CacheKey, value_type: Optional[Any] = None
    ) -> Optional[CacheEntry]:
        """
        Look up a live entry.

        ``value_type`` is used by stores that hold serialized payloads to
        rebuild the cached value.
        """
        pass

    @abstractmethod
    async def set(self, key: CacheKey, value: Any, policy: CachePolicy) -> None:
        """Store a value, replacing any existing entry for the key."""
        pass

    @abstractmethod
    async def remove(self, key: CacheKey) -> None:
        """Remove an entry. Removing an absent key is a no-op."""
        pass

    @abstractmethod
    async def refresh(self, key: CacheKey) -> None:
        """Extend the sliding window of an entry without reading its value."""
        pass

    @abstractmethod
    async def remove_by_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``."""
        pass

    async def health_check(self) -> Dict[str, Any]:
        """Report store health for monitoring."""
        return {"status": "healthy", "backend": type(self).__name__}

    async def close(self) -> None:
        """Release resources held by the store."""
        pass
