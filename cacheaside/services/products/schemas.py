"""Product API and cache schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProductBase(BaseModel):
    """Base product schema with validation."""

    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    description: Optional[str] = Field(
        None, max_length=2000, description="Product description"
    )
    price: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2, description="Unit price"
    )


class ProductCreate(ProductBase):
    """Schema for creating products."""


class ProductUpdate(ProductBase):
    """Schema for replacing a product's fields."""


class ProductDto(BaseModel):
    """Product as returned by the API and held in the cache."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    price: Decimal
