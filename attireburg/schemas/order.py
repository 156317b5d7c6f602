"""Pydantic schemas for order status."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import Field

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


class OrderStatusUpdate(BaseCreateSchema):
    status: str = Field(..., max_length=50)
    tracking_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    notify_customer: bool = True


class OrderCancelRequest(BaseCreateSchema):
    reason: Optional[str] = Field(None, max_length=1000)


class OrderStatusHistoryResponse(BaseResponseSchema):
    from_status: Optional[str] = None
    to_status: str
    notes: Optional[str] = None
    changed_by: Optional[UUID] = None
    created_at: datetime


class OrderStatusResponse(BaseResponseSchema):
    order_id: UUID
    order_number: str
    order_type: str
    status: str
    status_label: str
    status_label_en: str
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None
    available_transitions: List[str]
    history: List[OrderStatusHistoryResponse]
