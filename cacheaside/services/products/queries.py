"""
Product queries.

Both queries are cacheable: a single product under ``product:<id>`` and
product lists under ``products`` (with one extra key segment per filter
option in use).
"""

from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from ...domain.cache.value_objects import CacheKey, CachePolicy
from ..cache.caching_behavior import CacheableRequest
from .schemas import ProductDto

PRODUCT_ENTITY = "product"
PRODUCT_COLLECTION = "products"


@dataclass(frozen=True)
class GetProductQuery(CacheableRequest):
    """Fetch one product by ID."""

    product_id: UUID

    base_policy = CachePolicy.entity()
    response_type = ProductDto

    def cache_key(self) -> CacheKey:
        return CacheKey.entity(PRODUCT_ENTITY, self.product_id)


@dataclass(frozen=True)
class ListProductsQuery(CacheableRequest):
    """List products, optionally searched, sorted and paged."""

    search: Optional[str] = None
    sort_by: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None

    base_policy = CachePolicy.collection()
    response_type = List[ProductDto]

    def cache_key(self) -> CacheKey:
        search = self.search.strip() if self.search else None
        sort = ",".join(part.strip() for part in self.sort_by.split(",")) if self.sort_by else None
        return CacheKey.collection(
            PRODUCT_COLLECTION,
            search=search or None,
            sort=sort or None,
            page=self.page,
            page_size=self.page_size,
        )
