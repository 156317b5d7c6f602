"""Pydantic schemas for waitlist subscriptions."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import Field

from attireburg.schemas.base import BaseCreateSchema, BaseResponseSchema


class WaitlistSubscribeRequest(BaseCreateSchema):
    email: str = Field(..., max_length=255)
    product_id: UUID
    variant_id: Optional[UUID] = None
    user_id: Optional[UUID] = None


class WaitlistUnsubscribeRequest(BaseCreateSchema):
    email: str = Field(..., max_length=255)
    product_id: UUID
    variant_id: Optional[UUID] = None


class WaitlistSubscribeResponse(BaseResponseSchema):
    success: bool
    message: str
    subscription_id: Optional[UUID] = None


class SubscriptionStatusResponse(BaseResponseSchema):
    subscribed: bool


class WaitlistSubscriptionResponse(BaseResponseSchema):
    id: UUID
    email: str
    product_id: UUID
    product_name: Optional[str] = None
    variant_id: Optional[UUID] = None
    variant_sku: Optional[str] = None
    user_id: Optional[UUID] = None
    is_active: bool
    notified_at: Optional[datetime] = None
    created_at: datetime
    expected_restock_date: Optional[datetime] = None


class WaitlistSubscriptionListResponse(BaseResponseSchema):
    subscriptions: List[WaitlistSubscriptionResponse]
    total: int


class ProductWaitlistCount(BaseResponseSchema):
    product_id: UUID
    product_name: str
    count: int


class VariantWaitlistCount(BaseResponseSchema):
    variant_id: UUID
    variant_sku: str
    count: int


class WaitlistAnalyticsResponse(BaseResponseSchema):
    total_subscriptions: int
    active_subscriptions: int
    subscriptions_by_product: List[ProductWaitlistCount]
    subscriptions_by_variant: List[VariantWaitlistCount]


class WaitlistAnalyticsWrapper(BaseResponseSchema):
    """GET /admin/waitlists?analytics=true."""
    analytics: WaitlistAnalyticsResponse
