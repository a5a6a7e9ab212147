"""
Inventory item schemas for validation and serialization.

An inventory item is one stock record: a product stored at a location
(derived from its SKU) with a quantity. Items reaching quantity zero are
deleted by the persistence layer.
"""

from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime

from models.base import BaseSchema, PaginatedResponse

MAX_IMAGE_URLS = 24

# Physical measurement fields; conflicts limited to these are lower-stakes
DIMENSION_FIELDS = ("length", "width", "height", "weight")


class InventoryItemCreate(BaseSchema):
    """
    Create a new inventory item.

    Required: sku
    Optional: everything else (location is derived from the SKU when absent)
    """

    product_id: Optional[str] = Field(
        None,
        description="External/marketplace product identifier, unique when present"
    )
    sku: str = Field(
        ...,
        min_length=1,
        description="Stock-keeping unit; its leading letter+digits encode the location",
        examples=["A101-F", "E501-N"]
    )
    location: Optional[str] = Field(
        None,
        description="Storage location code (defaults to the SKU prefix)"
    )
    quantity: int = Field(
        default=1,
        ge=0,
        description="Units in stock"
    )
    barcode: Optional[str] = Field(None, description="Scanned barcode")
    name: Optional[str] = Field(None, description="Product name")
    condition: Optional[str] = Field(None, description="Item condition")
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    volume: Optional[float] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    image_urls: list[str] = Field(
        default_factory=list,
        max_length=MAX_IMAGE_URLS,
        description="Product image URLs"
    )
    item_id: Optional[str] = Field(None, description="Marketplace listing ID")
    ebay_url: Optional[str] = Field(None, description="Marketplace listing URL")
    ebay_seller_name: Optional[str] = Field(None, description="Marketplace seller")


class InventoryItemResponse(InventoryItemCreate):
    """
    Inventory item with all stored fields.

    Used for GET responses and as the in-memory record during reconciliation.
    """

    id: str = Field(..., description="Inventory item UUID")
    location: str = Field(..., description="Storage location code")
    quantity: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("image_urls", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        """Stored rows may hold NULL instead of an empty list."""
        return v or []


class InventoryListResponse(PaginatedResponse):
    """List of inventory items with pagination."""

    data: list[InventoryItemResponse]


class QuantityAdjustment(BaseSchema):
    """Relative quantity change (positive = stock in, negative = pick)."""

    delta: int = Field(..., description="Units to add (negative to remove)")


class QuantityAdjustmentResponse(BaseSchema):
    """Result of a quantity adjustment."""

    item: Optional[InventoryItemResponse] = None
    deleted: bool = Field(False, description="True if quantity reached zero and the item was removed")
