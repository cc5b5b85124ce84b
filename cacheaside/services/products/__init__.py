"""
Product Catalog Service

Queries, commands and handlers for the product catalog, dispatched through
the request pipeline.
"""

from .commands import CreateProductCommand, DeleteProductCommand, UpdateProductCommand
from .exceptions import ProductNotFoundException
from .handlers import ProductCreatedNotification, build_mediator
from .queries import GetProductQuery, ListProductsQuery
from .schemas import ProductCreate, ProductDto, ProductUpdate

__all__ = [
    "CreateProductCommand",
    "DeleteProductCommand",
    "UpdateProductCommand",
    "ProductNotFoundException",
    "ProductCreatedNotification",
    "build_mediator",
    "GetProductQuery",
    "ListProductsQuery",
    "ProductCreate",
    "ProductDto",
    "ProductUpdate",
]
