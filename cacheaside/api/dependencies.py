"""
FastAPI dependencies.

The cache coordinator lives on ``app.state`` for the lifetime of the process;
repositories and the mediator are built per request around a fresh session.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..db import get_database_session
from ..repositories.product import ProductRepository
from ..services.cache.coordinator import CacheAsideCoordinator
from ..services.pipeline import Mediator
from ..services.products.handlers import build_mediator


async def get_product_repository(
    session: AsyncSession = Depends(get_database_session),
) -> ProductRepository:
    return ProductRepository(session)


def get_cache_coordinator(request: Request) -> CacheAsideCoordinator:
    return request.app.state.cache_coordinator


def get_mediator(
    repository: ProductRepository = Depends(get_product_repository),
    coordinator: CacheAsideCoordinator = Depends(get_cache_coordinator),
) -> Mediator:
    return build_mediator(
        repository, coordinator, log_payloads=not get_settings().is_production
    )
