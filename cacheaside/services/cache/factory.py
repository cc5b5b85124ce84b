"""
Cache wiring.

Builds the cache store selected by configuration and the coordinator on top
of it. One store per process; nothing in the cache core looks it up globally.
"""

import structlog

from ...core.config import Settings
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import CachePolicy
from ...infrastructure.redis.connection_factory import RedisConnectionFactory
from ...infrastructure.repositories.memory_cache_store import MemoryCacheStore
from ...infrastructure.repositories.redis_cache_store import RedisCacheStore
from ...infrastructure.serialization import JsonCacheSerializer
from .coordinator import CacheAsideCoordinator

logger = structlog.get_logger()


def build_cache_store(settings: Settings) -> CacheStore:
    """Create the store named by ``CACHE_BACKEND``."""
    if settings.CACHE_BACKEND == "redis":
        connection_factory = RedisConnectionFactory.from_settings(settings)
        store: CacheStore = RedisCacheStore(
            connection_factory,
            serializer=JsonCacheSerializer(),
            instance_name=settings.CACHE_INSTANCE_NAME,
            circuit_breaker=connection_factory.create_circuit_breaker(
                failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
            ),
        )
    else:
        store = MemoryCacheStore(size_limit=settings.CACHE_SIZE_LIMIT)

    logger.info(
        "Cache store configured",
        backend=settings.CACHE_BACKEND,
        store=type(store).__name__,
    )
    return store


def build_coordinator(settings: Settings, store: CacheStore) -> CacheAsideCoordinator:
    """Create the coordinator with the configured default policy."""
    return CacheAsideCoordinator(
        store,
        default_policy=CachePolicy(
            sliding_minutes=settings.CACHE_DEFAULT_SLIDING_MINUTES or None,
            absolute_minutes=settings.CACHE_DEFAULT_ABSOLUTE_MINUTES,
        ),
        single_flight=settings.CACHE_SINGLE_FLIGHT,
    )
