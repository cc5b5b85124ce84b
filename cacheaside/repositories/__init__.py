"""
Repository Pattern Implementation

All data access goes through repositories.
"""

from .base import BaseRepository
from .product import ProductFilter, ProductRepository

__all__ = [
    "BaseRepository",
    "ProductFilter",
    "ProductRepository",
]
