"""
Redis Cache Store

Remote cache store backed by Redis hashes.
Each entry is a hash holding the serialized value (``data``), the absolute
deadline as epoch seconds (``absexp``) and the sliding window in seconds
(``sldexp``, -1 when the entry has no sliding window). The key's TTL is kept
at the smaller of the sliding window and the remaining absolute lifetime, so
Redis drops the entry when either deadline passes.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from opentelemetry import trace
from redis.exceptions import RedisError

from ...domain.cache.entities import CacheEntry
from ...domain.cache.exceptions import CacheUnavailableException
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import CacheKey, CachePolicy
from ..redis.circuit_breaker import RedisCircuitBreaker
from ..redis.connection_factory import RedisConnectionFactory
from ..redis.exceptions import (
    RedisConnectionException,
    RedisOperationTimeoutException,
)
from ..serialization import JsonCacheSerializer

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

DATA_FIELD = "data"
ABSOLUTE_FIELD = "absexp"
SLIDING_FIELD = "sldexp"
NO_SLIDING = -1

SCAN_BATCH_SIZE = 500

# Re-arms the TTL of KEYS[1] to min(sliding window, absolute deadline - now)
# atomically with respect to concurrent writes of the same key.
# ARGV: now (epoch seconds), absolute field, sliding field.
# Returns the new TTL in ms, 0 when there is nothing to re-arm, -1 when the
# entry was past its absolute deadline and has been removed.
REFRESH_SCRIPT = """
local fields = redis.call('HMGET', KEYS[1], ARGV[2], ARGV[3])
local absexp = tonumber(fields[1])
local sldexp = tonumber(fields[2])
if not absexp or not sldexp or sldexp < 0 then
    return 0
end
local ttl_ms = math.floor(math.min(sldexp, absexp - tonumber(ARGV[1])) * 1000)
if ttl_ms <= 0 then
    redis.call('UNLINK', KEYS[1])
    return -1
end
redis.call('PEXPIRE', KEYS[1], ttl_ms)
return ttl_ms
"""
REFRESH_EXPIRED = -1


def _escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so ``value`` matches literally."""
    return "".join("\\" + char if char in "*?[]\\" else char for char in value)


def _to_float(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("ascii")
    return float(raw)


class RedisCacheStore(CacheStore):
    """Redis implementation of the cache store."""

    refresh_on_hit = True

    def __init__(
        self,
        connection_factory: RedisConnectionFactory,
        serializer: Optional[JsonCacheSerializer] = None,
        instance_name: str = "",
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._factory = connection_factory
        self._serializer = serializer or JsonCacheSerializer()
        self._instance_name = instance_name
        self._breaker = circuit_breaker or connection_factory.create_circuit_breaker()
        self._clock = clock

    def _redis_key(self, key: CacheKey) -> str:
        return f"{self._instance_name}{key.value}"

    async def _execute(
        self,
        operation: str,
        key: str,
        command: Callable[[Any], Awaitable[T]],
    ) -> T:
        """Run a Redis command through the circuit breaker, mapping failures."""

        async def run() -> T:
            client = await self._factory.get_client()
            return await command(client)

        try:
            return await self._breaker.call(run)
        except CacheUnavailableException:
            raise
        except asyncio.TimeoutError:
            raise RedisOperationTimeoutException(
                operation=operation,
                timeout_seconds=self._breaker.config.operation_timeout,
                key=key,
            )
        except (RedisError, OSError) as e:
            raise RedisConnectionException(
                message=f"Redis {operation} failed",
                operation=operation,
                key=key,
                original_error=e,
            )

    async def get(
        self, key: CacheKey, value_type: Optional[Any] = None
    ) -> Optional[CacheEntry]:
        """Fetch and decode an entry."""
        redis_key = self._redis_key(key)
        with tracer.start_as_current_span("redis_cache_store.get") as span:
            span.set_attribute("cache.key", key.value)

            data, absexp, sldexp = await self._execute(
                "get",
                redis_key,
                lambda client: client.hmget(
                    redis_key, DATA_FIELD, ABSOLUTE_FIELD, SLIDING_FIELD
                ),
            )
            span.set_attribute("cache.hit", data is not None)
            if data is None:
                return None

            value = self._serializer.decode(data, value_type, key=key.value)
            now = self._clock()
            absolute_expires_at = _to_float(absexp)
            sliding_window = _to_float(sldexp)
            if absolute_expires_at is None:
                absolute_expires_at = now
            if sliding_window is None or sliding_window < 0:
                sliding_window = None

            return CacheEntry(
                key=key,
                value=value,
                created_at=now,
                absolute_expires_at=absolute_expires_at,
                sliding_window=sliding_window,
                sliding_expires_at=(
                    min(now + sliding_window, absolute_expires_at)
                    if sliding_window is not None
                    else None
                ),
            )

    async def set(self, key: CacheKey, value: Any, policy: CachePolicy) -> None:
        """Serialize and store a value with its expiration metadata."""
        redis_key = self._redis_key(key)
        with tracer.start_as_current_span("redis_cache_store.set") as span:
            span.set_attribute("cache.key", key.value)

            now = self._clock()
            entry = CacheEntry.create(key, value, policy, now)
            ttl_ms = int(entry.remaining_lifetime(now) * 1000)
            if ttl_ms <= 0:
                # Already expired on arrival: make sure no older value survives.
                await self.remove(key)
                return

            payload = self._serializer.encode(value, key=key.value)
            span.set_attribute("cache.payload_bytes", len(payload))
            mapping = {
                DATA_FIELD: payload,
                ABSOLUTE_FIELD: repr(entry.absolute_expires_at),
                SLIDING_FIELD: repr(
                    entry.sliding_window
                    if entry.sliding_window is not None
                    else NO_SLIDING
                ),
            }

            async def write(client):
                async with client.pipeline(transaction=True) as pipe:
                    pipe.delete(redis_key)
                    pipe.hset(redis_key, mapping=mapping)
                    pipe.pexpire(redis_key, ttl_ms)
                    return await pipe.execute()

            await self._execute("set", redis_key, write)

    async def remove(self, key: CacheKey) -> None:
        """Unlink an entry."""
        redis_key = self._redis_key(key)
        await self._execute(
            "remove", redis_key, lambda client: client.unlink(redis_key)
        )

    async def refresh(self, key: CacheKey) -> None:
        """Re-arm the key TTL from the stored deadlines without reading data."""
        redis_key = self._redis_key(key)
        ttl_ms = await self._execute(
            "refresh",
            redis_key,
            lambda client: client.eval(
                REFRESH_SCRIPT,
                1,
                redis_key,
                repr(self._clock()),
                ABSOLUTE_FIELD,
                SLIDING_FIELD,
            ),
        )
        if ttl_ms == REFRESH_EXPIRED:
            logger.debug(
                "Removed expired cache entry on refresh", extra={"key": key.value}
            )

    async def remove_by_prefix(self, prefix: str) -> int:
        """Unlink every key under ``prefix`` using SCAN."""
        pattern = _escape_glob(f"{self._instance_name}{prefix}") + "*"

        async def unlink_matching(client) -> int:
            removed = 0
            batch: List[Any] = []
            async for redis_key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                batch.append(redis_key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    removed += await client.unlink(*batch)
                    batch = []
            if batch:
                removed += await client.unlink(*batch)
            return removed

        removed = await self._execute("remove_by_prefix", pattern, unlink_matching)
        logger.debug(
            "Removed cache entries by prefix",
            extra={"prefix": prefix, "removed": removed},
        )
        return removed

    async def health_check(self) -> Dict[str, Any]:
        """Ping Redis and report circuit breaker status."""
        status: Dict[str, Any] = {
            "backend": "redis",
            "instance_name": self._instance_name,
            "circuit_breaker": self._breaker.get_status(),
        }
        try:
            await self._execute("ping", "", lambda client: client.ping())
            status["status"] = "healthy"
        except CacheUnavailableException as e:
            status["status"] = "unhealthy"
            status["error"] = e.message
        return status

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._factory.close()
