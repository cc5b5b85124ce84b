"""
Product commands.

Every command declares the cache entries it makes stale. Creating a product
only affects product lists; updating or deleting one also drops its own entry.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from ..cache.invalidation import InvalidatingRequest, InvalidationPlan
from .queries import PRODUCT_COLLECTION, PRODUCT_ENTITY


@dataclass(frozen=True)
class CreateProductCommand(InvalidatingRequest):
    name: str
    price: Decimal
    description: Optional[str] = None

    def invalidation_plan(self, response: Any) -> InvalidationPlan:
        return InvalidationPlan.for_create(PRODUCT_COLLECTION)


@dataclass(frozen=True)
class UpdateProductCommand(InvalidatingRequest):
    product_id: UUID
    name: str
    price: Decimal
    description: Optional[str] = None

    def invalidation_plan(self, response: Any) -> InvalidationPlan:
        return InvalidationPlan.for_update(
            PRODUCT_ENTITY, self.product_id, PRODUCT_COLLECTION
        )


@dataclass(frozen=True)
class DeleteProductCommand(InvalidatingRequest):
    product_id: UUID

    def invalidation_plan(self, response: Any) -> InvalidationPlan:
        return InvalidationPlan.for_delete(
            PRODUCT_ENTITY, self.product_id, PRODUCT_COLLECTION
        )
