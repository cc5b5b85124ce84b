"""
Product Repository

Product persistence with search, multi-field sorting and pagination.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Product
from .base import BaseRepository

logger = structlog.get_logger()

SORTABLE_FIELDS = {
    "id": Product.id,
    "name": Product.name,
    "description": Product.description,
    "price": Product.price,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


@dataclass(frozen=True)
class ProductFilter:
    """Search, sort and paging options for listing products."""

    search: Optional[str] = None
    sort_by: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None


def parse_sort(sort_by: Optional[str]) -> List[Tuple[str, bool]]:
    """
    Parse ``"price desc, name"`` into ``[("price", True), ("name", False)]``.

    Unknown fields are skipped; field names are case-insensitive.
    """
    if not sort_by or not sort_by.strip():
        return []

    ordering = []
    for part in sort_by.split(","):
        tokens = part.split()
        if not tokens:
            continue
        field = tokens[0].lower()
        if field not in SORTABLE_FIELDS:
            continue
        descending = len(tokens) > 1 and tokens[1].lower() == "desc"
        ordering.append((field, descending))
    return ordering


class ProductRepository(BaseRepository):
    """Product-specific repository."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Product)

    async def list(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        """List products matching the filter."""
        product_filter = product_filter or ProductFilter()
        stmt = self._apply_search(select(Product), product_filter.search)
        stmt = self._apply_sort(stmt, product_filter.sort_by)
        stmt = self._apply_pagination(stmt, product_filter.page, product_filter.page_size)

        try:
            result = await self.session.execute(stmt)
            products = list(result.scalars().all())
        except Exception as e:
            logger.error(
                "ProductRepository: Failed to list products",
                error=str(e),
                exc_info=True,
            )
            raise

        logger.debug(
            "ProductRepository: Products listed",
            count=len(products),
            search=product_filter.search,
            sort_by=product_filter.sort_by,
            page=product_filter.page,
        )
        return products

    @staticmethod
    def _apply_search(stmt: Select, search: Optional[str]) -> Select:
        if not search or not search.strip():
            return stmt
        pattern = f"%{search.strip()}%"
        return stmt.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )

    @staticmethod
    def _apply_sort(stmt: Select, sort_by: Optional[str]) -> Select:
        ordering = parse_sort(sort_by)
        if not ordering:
            return stmt.order_by(Product.created_at, Product.id)
        return stmt.order_by(
            *(
                SORTABLE_FIELDS[field].desc() if descending else SORTABLE_FIELDS[field].asc()
                for field, descending in ordering
            )
        )

    @staticmethod
    def _apply_pagination(
        stmt: Select, page: Optional[int], page_size: Optional[int]
    ) -> Select:
        if page is None and page_size is None:
            return stmt
        page = max(page or 1, 1)
        page_size = max(page_size or 10, 1)
        return stmt.offset((page - 1) * page_size).limit(page_size)
