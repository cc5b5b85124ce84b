"""
Unit tests for the cacheable pipeline behavior, the cacheable decorator and
write invalidation.
"""

from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest

from cacheaside.domain.cache.exceptions import CacheUnavailableException
from cacheaside.domain.cache.value_objects import CacheKey, CachePolicy
from cacheaside.services.cache.caching_behavior import (
    CacheableRequest,
    CachingBehavior,
    cacheable,
)
from cacheaside.services.cache.coordinator import CacheAsideCoordinator
from cacheaside.services.cache.invalidation import (
    EntityWriteInvalidator,
    InvalidatingRequest,
    InvalidationBehavior,
    InvalidationPlan,
)
from cacheaside.services.pipeline import Request


@dataclass(frozen=True)
class GetWidgetQuery(CacheableRequest):
    widget_id: int

    base_policy = CachePolicy.entity()

    def cache_key(self) -> CacheKey:
        return CacheKey.entity("widget", self.widget_id)


@dataclass(frozen=True)
class SearchWidgetsQuery(CacheableRequest):
    term: str

    def cache_key(self) -> CacheKey:
        return CacheKey(f"widgets:{self.term}")


@dataclass(frozen=True)
class PlainQuery(Request):
    widget_id: int


@dataclass(frozen=True)
class RenameWidgetCommand(InvalidatingRequest):
    widget_id: int

    def invalidation_plan(self, response):
        return InvalidationPlan.for_update("widget", self.widget_id, "widgets")


class TestCacheableRequest:
    """Test per-request policy resolution."""

    def test_base_policy_applies(self):
        """The request's base policy wins over the coordinator default."""
        policy = GetWidgetQuery(widget_id=1).cache_policy(CachePolicy.default())
        assert policy == CachePolicy.entity()

    def test_overrides_apply(self):
        """Positive per-call overrides replace the base windows."""
        query = GetWidgetQuery(
            widget_id=1, sliding_expiration_minutes=1, absolute_expiration_minutes=2
        )
        policy = query.cache_policy(CachePolicy.default())
        assert (policy.sliding_minutes, policy.absolute_minutes) == (1, 2)

    def test_zero_overrides_keep_base_policy(self):
        """Zero overrides fall back to the base policy."""
        query = GetWidgetQuery(
            widget_id=1, sliding_expiration_minutes=0, absolute_expiration_minutes=0
        )
        assert query.cache_policy(CachePolicy.default()) == CachePolicy.entity()


class TestCachingBehavior:
    """Test the caching pipeline step."""

    @pytest.mark.asyncio
    async def test_cacheable_request_served_from_cache(self, coordinator):
        """A repeated request does not reach the handler."""
        behavior = CachingBehavior(coordinator)
        handler = AsyncMock(return_value={"id": 1})

        await behavior.handle(GetWidgetQuery(widget_id=1), handler)
        result = await behavior.handle(GetWidgetQuery(widget_id=1), handler)

        assert result == {"id": 1}
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bypass_reaches_handler(self, coordinator, memory_store):
        """bypass_cache sends the request straight to the handler."""
        behavior = CachingBehavior(coordinator)
        handler = AsyncMock(return_value={"id": 1})

        await behavior.handle(GetWidgetQuery(widget_id=1, bypass_cache=True), handler)
        await behavior.handle(GetWidgetQuery(widget_id=1, bypass_cache=True), handler)

        assert handler.await_count == 2
        assert await memory_store.get(CacheKey("widget:1")) is None

    @pytest.mark.asyncio
    async def test_non_cacheable_request_passes_through(self, coordinator):
        """Requests without a cache key are not cached."""
        behavior = CachingBehavior(coordinator)
        handler = AsyncMock(return_value=1)

        await behavior.handle(PlainQuery(widget_id=1), handler)
        await behavior.handle(PlainQuery(widget_id=1), handler)

        assert handler.await_count == 2
        assert coordinator.statistics.misses == 0

    @pytest.mark.asyncio
    async def test_rejected_key_reaches_handler(self, coordinator):
        """A request whose key cannot be built is served uncached."""
        behavior = CachingBehavior(coordinator)
        handler = AsyncMock(return_value=["w"])

        for term in ("green tea", "x" * 300):
            assert await behavior.handle(SearchWidgetsQuery(term=term), handler) == ["w"]

        assert handler.await_count == 2
        assert coordinator.statistics.misses == 0


class TestCacheableDecorator:
    """Test the function decorator."""

    @pytest.mark.asyncio
    async def test_decorated_function_cached(self, coordinator):
        """Calls with the same arguments share one cached result."""
        calls = []

        @cacheable(coordinator, lambda widget_id: CacheKey.entity("widget", widget_id))
        async def load_widget(widget_id):
            calls.append(widget_id)
            return {"id": widget_id}

        assert await load_widget(1) == {"id": 1}
        assert await load_widget(1) == {"id": 1}
        assert await load_widget(2) == {"id": 2}

        assert calls == [1, 2]
        assert load_widget.__name__ == "load_widget"


class TestInvalidationPlan:
    """Test the invalidation plans for writes."""

    def test_create_plan_drops_collections_only(self):
        """Creates leave entity entries alone."""
        plan = InvalidationPlan.for_create("products")
        assert plan.keys == (CacheKey("products"),)
        assert plan.prefixes == ("products:",)

    def test_update_plan_drops_entity_and_collections(self):
        """Updates drop the entity entry and every collection view."""
        plan = InvalidationPlan.for_update("product", 7, "products")
        assert plan.keys == (CacheKey("product:7"), CacheKey("products"))
        assert plan.prefixes == ("products:",)
        assert InvalidationPlan.for_delete("product", 7, "products") == plan

    def test_empty_plan_is_falsy(self):
        """An empty plan does nothing."""
        assert not InvalidationPlan()


class TestEntityWriteInvalidator:
    """Test applying invalidation plans."""

    @pytest.mark.asyncio
    async def test_update_drops_entity_and_lists(self, coordinator, memory_store):
        """Entity, bare collection and parameterised views are removed."""
        for key in ("widget:1", "widget:2", "widgets", "widgets:page=1"):
            await coordinator.get_or_compute(key, None, lambda: "cached")

        applied = await EntityWriteInvalidator(coordinator).apply(
            InvalidationPlan.for_update("widget", 1, "widgets")
        )

        assert applied is True
        assert await memory_store.get(CacheKey("widget:1")) is None
        assert await memory_store.get(CacheKey("widgets")) is None
        assert await memory_store.get(CacheKey("widgets:page=1")) is None
        assert await memory_store.get(CacheKey("widget:2")) is not None

    @pytest.mark.asyncio
    async def test_unreachable_store_reported_not_raised(self):
        """Invalidation failures are logged and reported as False."""
        store = MagicMock()
        store.remove = AsyncMock(side_effect=CacheUnavailableException())
        store.remove_by_prefix = AsyncMock(side_effect=CacheUnavailableException())
        invalidator = EntityWriteInvalidator(CacheAsideCoordinator(store))

        assert await invalidator.apply(InvalidationPlan.for_create("widgets")) is False


class TestInvalidationBehavior:
    """Test the invalidation pipeline step."""

    @pytest.mark.asyncio
    async def test_plan_applied_after_success(self):
        """A successful write applies its plan."""
        invalidator = MagicMock()
        invalidator.apply = AsyncMock(return_value=True)
        behavior = InvalidationBehavior(invalidator)

        result = await behavior.handle(
            RenameWidgetCommand(widget_id=3), AsyncMock(return_value="renamed")
        )

        assert result == "renamed"
        invalidator.apply.assert_awaited_once_with(
            InvalidationPlan.for_update("widget", 3, "widgets")
        )

    @pytest.mark.asyncio
    async def test_failed_write_invalidates_nothing(self):
        """A failing handler leaves the cache untouched."""
        invalidator = MagicMock()
        invalidator.apply = AsyncMock()
        behavior = InvalidationBehavior(invalidator)

        with pytest.raises(RuntimeError):
            await behavior.handle(
                RenameWidgetCommand(widget_id=3),
                AsyncMock(side_effect=RuntimeError("constraint violated")),
            )

        invalidator.apply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reads_do_not_invalidate(self):
        """Requests without a plan pass through."""
        invalidator = MagicMock()
        invalidator.apply = AsyncMock()
        behavior = InvalidationBehavior(invalidator)

        await behavior.handle(PlainQuery(widget_id=1), AsyncMock(return_value=1))

        invalidator.apply.assert_not_awaited()
