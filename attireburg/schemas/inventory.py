"""Pydantic schemas for stock checks and restock events."""
from typing import Optional, List
from uuid import UUID
from pydantic import Field

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


class InventoryItemRequest(BaseCreateSchema):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(..., gt=0)


class InventoryCheckRequest(BaseCreateSchema):
    items: List[InventoryItemRequest] = Field(..., min_length=1)


class RestockEventRequest(BaseCreateSchema):
    """Manual restock. new_stock omitted treats the current stock as new arrival."""
    product_id: UUID
    variant_id: Optional[UUID] = None
    new_stock: Optional[int] = Field(None, ge=0)


class StockInfoResponse(BaseResponseSchema):
    product_id: UUID
    variant_id: Optional[UUID] = None
    name: Optional[str] = None
    requested: int
    current_stock: int
    available: bool


class InventoryCheckResponse(BaseResponseSchema):
    available: bool
    items: List[StockInfoResponse]


class RestockEventResponse(BaseResponseSchema):
    success: bool
    backorders_fulfilled: int
    notifications_sent: int
    message: str


class MonitoringStatsResponse(BaseResponseSchema):
    total_backorders: int
    pending_backorders: int
    total_waitlist_subscriptions: int
    active_waitlist_subscriptions: int
    out_of_stock_products: int
    out_of_stock_variants: int


class VariantStockResponse(BaseResponseSchema):
    id: UUID
    sku: str
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int


class ProductStockResponse(BaseResponseSchema):
    product_id: UUID
    name: str
    product_stock: int
    variants: List[VariantStockResponse]
    total_stock: int


class LowStockProduct(BaseResponseSchema):
    id: UUID
    name: str
    stock: int


class LowStockVariant(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_name: str
    sku: str
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int


class LowStockResponse(BaseResponseSchema):
    threshold: int
    products: List[LowStockProduct]
    variants: List[LowStockVariant]
