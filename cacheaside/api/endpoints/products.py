"""
Products API endpoints

CRUD operations for catalog products. Reads go through the response cache;
writes invalidate the entries they make stale before returning.
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response

from ...services.pipeline import Mediator
from ...services.products import (
    CreateProductCommand,
    DeleteProductCommand,
    GetProductQuery,
    ListProductsQuery,
    ProductCreate,
    ProductDto,
    ProductUpdate,
    UpdateProductCommand,
)
from ..dependencies import get_mediator

logger = structlog.get_logger()
router = APIRouter(prefix="/products")


@router.get("", response_model=List[ProductDto])
async def list_products(
    search: Optional[str] = Query(None, max_length=200, description="Search in name and description"),
    sort_by: Optional[str] = Query(None, description="Sort fields, e.g. 'price desc,name'"),
    page: Optional[int] = Query(None, ge=1, description="Page number"),
    page_size: Optional[int] = Query(None, ge=1, le=100, description="Items per page"),
    bypass_cache: bool = Query(False, description="Read straight from the database"),
    mediator: Mediator = Depends(get_mediator),
):
    """List products, optionally searched, sorted and paged."""
    return await mediator.send(
        ListProductsQuery(
            search=search,
            sort_by=sort_by,
            page=page,
            page_size=page_size,
            bypass_cache=bypass_cache,
        )
    )


@router.get("/{product_id}", response_model=ProductDto)
async def get_product(
    product_id: UUID,
    bypass_cache: bool = Query(False, description="Read straight from the database"),
    mediator: Mediator = Depends(get_mediator),
):
    """Get product by ID."""
    return await mediator.send(
        GetProductQuery(product_id=product_id, bypass_cache=bypass_cache)
    )


@router.post("", response_model=ProductDto, status_code=201)
async def create_product(
    product_data: ProductCreate,
    request: Request,
    response: Response,
    mediator: Mediator = Depends(get_mediator),
):
    """Create a new product."""
    product = await mediator.send(
        CreateProductCommand(
            name=product_data.name,
            description=product_data.description,
            price=product_data.price,
        )
    )
    response.headers["Location"] = str(
        request.url_for("get_product", product_id=str(product.id))
    )
    logger.info("Product created", product_id=str(product.id))
    return product


@router.put("/{product_id}", response_model=ProductDto)
async def update_product(
    product_id: UUID,
    update_data: ProductUpdate,
    mediator: Mediator = Depends(get_mediator),
):
    """Replace a product's fields."""
    return await mediator.send(
        UpdateProductCommand(
            product_id=product_id,
            name=update_data.name,
            description=update_data.description,
            price=update_data.price,
        )
    )


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    mediator: Mediator = Depends(get_mediator),
):
    """Delete a product."""
    await mediator.send(DeleteProductCommand(product_id=product_id))
    return Response(status_code=204)
