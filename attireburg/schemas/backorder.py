"""Pydantic schemas for backorders."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import Field

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== Request Schemas ====================

class BackorderItemCreate(BaseCreateSchema):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(..., gt=0)
    size: str = Field(..., max_length=20)
    color: Optional[str] = Field(None, max_length=50)
    price: Decimal = Field(..., ge=0)


class BackorderCreate(BaseCreateSchema):
    user_id: UUID
    items: List[BackorderItemCreate] = Field(..., min_length=1)
    total_amount: Decimal = Field(..., ge=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    shipping_address: str = Field(..., min_length=1, max_length=500)
    shipping_city: str = Field(..., min_length=1, max_length=100)
    shipping_postal: str = Field(..., min_length=1, max_length=20)
    expected_fulfillment_date: Optional[datetime] = None
    paypal_order_id: Optional[str] = Field(None, max_length=100)
    paypal_payer_id: Optional[str] = Field(None, max_length=100)


class BackorderCancelRequest(BaseCreateSchema):
    order_id: str
    reason: Optional[str] = Field(None, max_length=1000)


class BackorderFulfillRequest(BaseCreateSchema):
    product_id: UUID
    variant_id: Optional[UUID] = None
    available_quantity: int = Field(..., gt=0)
    fulfillment_date: Optional[datetime] = None


# ==================== Response Schemas ====================

class BackorderCreateResponse(BaseResponseSchema):
    success: bool
    order_id: UUID
    message: str


class BackorderItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    product_name: Optional[str] = None
    variant_id: Optional[UUID] = None
    variant_sku: Optional[str] = None
    quantity: int
    size: str
    color: Optional[str] = None
    price: Decimal


class BackorderResponse(BaseResponseSchema):
    """BackorderInfo."""
    id: UUID
    order_number: str
    user_id: UUID
    order_type: str
    status: str
    total_amount: Decimal
    currency: str
    expected_fulfillment_date: Optional[datetime] = None
    backorder_priority: int
    cancellation_reason: Optional[str] = None
    created_at: datetime
    items: List[BackorderItemResponse]


class CustomerBackordersResponse(BaseResponseSchema):
    backorders: List[BackorderResponse]
    total: int


class BackorderListResponse(BaseResponseSchema):
    """Paginated admin listing."""
    items: List[BackorderResponse]
    total: int
    page: int = 1
    size: int = 20
    pages: int = 1


class BackorderFulfillResponse(BaseResponseSchema):
    success: bool
    fulfilled_orders: List[UUID]
    remaining_quantity: int
    message: str


class BackorderStatisticsResponse(BaseResponseSchema):
    total: int
    by_status: dict[str, int]
