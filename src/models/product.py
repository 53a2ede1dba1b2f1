"""Product model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class SizeStock(TypedDict):
    """Per-size availability entry in the products.sizes JSONB array.

    Informational only: the top-level ``stock`` column is the counter
    that checkout validates against and order placement decrements.
    """

    size: str
    stock: int


class Product(TypedDict):
    """Product table row representation."""

    id: UUID
    name: str
    price: str
    original_price: str | None
    images: list[str]
    sizes: list[SizeStock]
    colors: list[str]
    stock: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
