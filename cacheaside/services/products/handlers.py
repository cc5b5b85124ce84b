"""
Product request handlers and mediator assembly.

Handlers talk to the persistence provider only; caching and invalidation
happen in the pipeline behaviors around them.
"""

import uuid
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

import structlog

from ...models import Product
from ...repositories.product import ProductFilter, ProductRepository
from ..cache.caching_behavior import CachingBehavior
from ..cache.coordinator import CacheAsideCoordinator
from ..cache.invalidation import EntityWriteInvalidator, InvalidationBehavior
from ..pipeline import (
    LoggingBehavior,
    Mediator,
    Notification,
    NotificationHandler,
    RequestHandler,
)
from .commands import CreateProductCommand, DeleteProductCommand, UpdateProductCommand
from .exceptions import ProductNotFoundException
from .queries import GetProductQuery, ListProductsQuery
from .schemas import ProductDto

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProductCreatedNotification(Notification):
    product_id: UUID


class GetProductHandler(RequestHandler):
    def __init__(self, repository: ProductRepository):
        self.repository = repository

    async def handle(self, request: GetProductQuery) -> ProductDto:
        product = await self.repository.find_by_id(request.product_id)
        if product is None:
            raise ProductNotFoundException(request.product_id)
        return ProductDto.model_validate(product)


class ListProductsHandler(RequestHandler):
    def __init__(self, repository: ProductRepository):
        self.repository = repository

    async def handle(self, request: ListProductsQuery) -> List[ProductDto]:
        products = await self.repository.list(
            ProductFilter(
                search=request.search,
                sort_by=request.sort_by,
                page=request.page,
                page_size=request.page_size,
            )
        )
        return [ProductDto.model_validate(product) for product in products]


class CreateProductHandler(RequestHandler):
    def __init__(self, repository: ProductRepository, mediator: Optional[Mediator] = None):
        self.repository = repository
        self.mediator = mediator

    async def handle(self, request: CreateProductCommand) -> ProductDto:
        product = Product(
            id=uuid.uuid4(),
            name=request.name,
            description=request.description,
            price=request.price,
        )
        product = await self.repository.add(product)
        await self.repository.commit()

        if self.mediator is not None:
            await self.mediator.publish(ProductCreatedNotification(product_id=product.id))
        return ProductDto.model_validate(product)


class UpdateProductHandler(RequestHandler):
    def __init__(self, repository: ProductRepository):
        self.repository = repository

    async def handle(self, request: UpdateProductCommand) -> ProductDto:
        product = await self.repository.find_by_id(request.product_id)
        if product is None:
            raise ProductNotFoundException(request.product_id)

        product.name = request.name
        product.description = request.description
        product.price = request.price
        product = await self.repository.update(product)
        await self.repository.commit()
        return ProductDto.model_validate(product)


class DeleteProductHandler(RequestHandler):
    def __init__(self, repository: ProductRepository):
        self.repository = repository

    async def handle(self, request: DeleteProductCommand) -> None:
        product = await self.repository.find_by_id(request.product_id)
        if product is None:
            raise ProductNotFoundException(request.product_id)

        await self.repository.remove(product)
        await self.repository.commit()


class StockAssignmentHandler(NotificationHandler):
    """Reacts to new products by assigning initial stock."""

    async def handle(self, notification: ProductCreatedNotification) -> None:
        logger.info(
            "Assigning stock for new product", product_id=str(notification.product_id)
        )


def build_mediator(
    repository: ProductRepository,
    coordinator: CacheAsideCoordinator,
    log_payloads: bool = True,
) -> Mediator:
    """
    Assemble the product pipeline.

    Order: logging outermost, then write invalidation, then response caching.
    """
    mediator = Mediator(
        behaviors=[
            LoggingBehavior(log_payloads=log_payloads),
            InvalidationBehavior(EntityWriteInvalidator(coordinator)),
            CachingBehavior(coordinator),
        ]
    )
    mediator.register(GetProductQuery, GetProductHandler(repository))
    mediator.register(ListProductsQuery, ListProductsHandler(repository))
    mediator.register(CreateProductCommand, CreateProductHandler(repository, mediator))
    mediator.register(UpdateProductCommand, UpdateProductHandler(repository))
    mediator.register(DeleteProductCommand, DeleteProductHandler(repository))
    mediator.subscribe(ProductCreatedNotification, StockAssignmentHandler())
    return mediator
