"""Pydantic schemas for restock dates."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import Field, model_validator

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== Request Schemas ====================

class RestockDateSet(BaseCreateSchema):
    """One restock date. expected_date omitted means "no date"."""
    product_id: UUID
    variant_id: Optional[UUID] = None
    expected_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class RestockDateRequest(BaseCreateSchema):
    """Single update ({productId, ...}) or bulk update ({updates: [...]})."""
    product_id: Optional[UUID] = None
    variant_id: Optional[UUID] = None
    expected_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    updates: Optional[List[RestockDateSet]] = None

    @model_validator(mode="after")
    def require_target(self):
        if self.updates is None and self.product_id is None:
            raise ValueError("productId or updates is required")
        return self


# ==================== Response Schemas ====================

class RestockScheduleResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    expected_date: Optional[datetime] = None
    actual_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UpcomingRestockResponse(RestockScheduleResponse):
    product_name: str
    variant_sku: Optional[str] = None
    waitlist_count: int = 0
    backorder_count: int = 0


class RestockHistoryResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    action: str
    expected_date: Optional[datetime] = None
    previous_date: Optional[datetime] = None
    notes: Optional[str] = None
    changed_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class RestockDateResponse(BaseResponseSchema):
    """GET /admin/restock-dates for one product/variant."""
    restock_date: Optional[RestockScheduleResponse] = None
    history: Optional[List[RestockHistoryResponse]] = None


class UpcomingRestocksResponse(BaseResponseSchema):
    upcoming_restocks: List[UpcomingRestockResponse]
    total: int


class BulkRestockResponse(BaseResponseSchema):
    success: bool
    message: str
    updated_count: int
    errors: List[str] = []


class ExpiredRestockResponse(BaseResponseSchema):
    processed_count: int
    notifications_sent: int


class RestockDisplayResponse(BaseResponseSchema):
    """Storefront restock badge state."""
    product_id: UUID
    variant_id: Optional[UUID] = None
    stock: int
    should_show: bool
    display_type: str
    message: Optional[str] = None
    expected_date: Optional[datetime] = None
