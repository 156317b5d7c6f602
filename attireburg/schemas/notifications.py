"""Pydantic schemas for customer notification emails."""
from typing import Optional, Dict
from uuid import UUID
from pydantic import Field

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


class RestockNotificationRequest(BaseCreateSchema):
    product_id: UUID
    variant_id: Optional[UUID] = None


class TestNotificationRequest(BaseCreateSchema):
    email: str = Field(..., max_length=255)


class NotificationTrackRequest(BaseCreateSchema):
    notification_id: str


class RestockFanoutResponse(BaseResponseSchema):
    success: bool
    message: str
    notifications_sent: int
    total_subscriptions: int


class NotificationSendResponse(BaseResponseSchema):
    success: bool
    message: str
    notification_id: Optional[UUID] = None


class NotificationAnalyticsResponse(BaseResponseSchema):
    """Rates are percentages rounded to two decimals."""
    total_sent: int
    open_rate: float
    click_rate: float
    conversion_rate: float
    by_type: Dict[str, int] = {}


class NotificationStatusResponse(BaseResponseSchema):
    analytics: NotificationAnalyticsResponse
