"""
Entity Write Invalidation

Removes cache entries made stale by a successful write. Write requests declare
what they invalidate by implementing ``InvalidatingRequest``; the
``InvalidationBehavior`` applies that plan once the handler has returned.
Invalidation is best effort: failures are logged and the write still succeeds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Tuple, Union
from uuid import UUID

import structlog

from ...domain.cache.value_objects import CacheKey
from ..pipeline import NextHandler, PipelineBehavior, Request
from .coordinator import CacheAsideCoordinator

logger = structlog.get_logger()


@dataclass(frozen=True)
class InvalidationPlan:
    """Keys and key prefixes to drop after a write."""

    keys: Tuple[CacheKey, ...] = ()
    prefixes: Tuple[str, ...] = ()

    @classmethod
    def for_create(cls, collection: str) -> "InvalidationPlan":
        """A new entity only makes collection views stale."""
        return cls(
            keys=(CacheKey.collection(collection),),
            prefixes=(CacheKey.collection_prefix(collection),),
        )

    @classmethod
    def for_update(
        cls, entity: str, entity_id: Union[str, int, UUID], collection: str
    ) -> "InvalidationPlan":
        """A changed entity makes its own entry and collection views stale."""
        return cls(
            keys=(
                CacheKey.entity(entity, entity_id),
                CacheKey.collection(collection),
            ),
            prefixes=(CacheKey.collection_prefix(collection),),
        )

    @classmethod
    def for_delete(
        cls, entity: str, entity_id: Union[str, int, UUID], collection: str
    ) -> "InvalidationPlan":
        return cls.for_update(entity, entity_id, collection)

    def __bool__(self) -> bool:
        return bool(self.keys or self.prefixes)


class InvalidatingRequest(Request, ABC):
    """A write request that declares which cache entries it makes stale."""

    @abstractmethod
    def invalidation_plan(self, response: Any) -> InvalidationPlan:
        """Entries to drop, given the handler's response."""
        pass


class EntityWriteInvalidator:
    """Applies invalidation plans through the coordinator."""

    def __init__(self, coordinator: CacheAsideCoordinator):
        self.coordinator = coordinator

    async def apply(self, plan: InvalidationPlan) -> bool:
        """
        Drop every key and prefix in the plan. Never raises.

        Returns:
            True if every removal reached the store
        """
        complete = True
        for key in plan.keys:
            if not await self.coordinator.invalidate(key):
                complete = False
                logger.warning("Cache invalidation failed", key=key.value)

        for prefix in plan.prefixes:
            if await self.coordinator.invalidate_prefix(prefix) is None:
                complete = False
                logger.warning("Cache prefix invalidation failed", prefix=prefix)

        return complete


class InvalidationBehavior(PipelineBehavior):
    """Runs a write request's invalidation plan after the handler succeeds."""

    def __init__(self, invalidator: EntityWriteInvalidator):
        self.invalidator = invalidator

    async def handle(self, request: Request, next_: NextHandler) -> Any:
        response = await next_()
        if isinstance(request, InvalidatingRequest):
            plan = request.invalidation_plan(response)
            if plan:
                await self.invalidator.apply(plan)
        return response
