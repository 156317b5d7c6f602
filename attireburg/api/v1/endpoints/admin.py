"""Admin API endpoints for backorder queues, waitlists and readiness."""
from typing import Optional, Union
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB, AdminUser
from attireburg.schemas.admin import ProductionCheckResponse
from attireburg.schemas.backorder import (
    BackorderFulfillRequest,
    BackorderFulfillResponse,
    BackorderListResponse,
    BackorderResponse,
    BackorderStatisticsResponse,
)
from attireburg.schemas.waitlist import (
    WaitlistAnalyticsWrapper,
    WaitlistSubscriptionListResponse,
    WaitlistSubscriptionResponse,
)
from attireburg.services.backorder_service import BackorderService
from attireburg.services.order_state_machine import OrderStatus
from attireburg.services.production_check import ProductionCheckService
from attireburg.services.waitlist_service import WaitlistService


router = APIRouter(tags=["Admin"])


# ==================== Backorders ====================

@router.put("/backorders/fulfill", response_model=BackorderFulfillResponse)
async def fulfill_backorders(
    data: BackorderFulfillRequest,
    db: DB,
    admin: AdminUser,
):
    """Move waiting backorders for an item to PROCESSING in priority order."""
    service = BackorderService(db)
    result = await service.fulfill_backorders(
        product_id=data.product_id,
        available_quantity=data.available_quantity,
        variant_id=data.variant_id,
        fulfillment_date=data.fulfillment_date,
        changed_by=admin.id,
    )
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result["message"])
    return result


@router.get("/backorders", response_model=BackorderListResponse)
async def list_backorders(
    db: DB,
    admin: AdminUser,
    status_filter: str = Query(OrderStatus.PENDING, alias="status"),
    product_id: Optional[uuid.UUID] = Query(None, alias="productId"),
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Backorders by status (default PENDING, "ALL" for every status)."""
    status_filter = status_filter.upper()
    if status_filter != "ALL" and status_filter not in OrderStatus.all():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status: {status_filter}"
        )

    service = BackorderService(db)
    items, total = await service.list_backorders(
        status=status_filter,
        product_id=product_id,
        variant_id=variant_id,
        page=page,
        limit=limit,
    )

    return BackorderListResponse(
        items=[BackorderResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        size=limit,
        pages=(total + limit - 1) // limit if total > 0 else 1,
    )


@router.get("/backorders/statistics", response_model=BackorderStatisticsResponse)
async def get_backorder_statistics(
    db: DB,
    admin: AdminUser,
):
    service = BackorderService(db)
    return await service.get_backorder_statistics()


# ==================== Waitlists ====================

@router.get(
    "/waitlists",
    response_model=Union[WaitlistSubscriptionListResponse, WaitlistAnalyticsWrapper],
)
async def get_waitlists(
    db: DB,
    admin: AdminUser,
    product_id: Optional[uuid.UUID] = Query(None, alias="productId"),
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
    analytics: bool = Query(False),
):
    """Subscriptions of one product, or waitlist analytics."""
    service = WaitlistService(db)

    if analytics or product_id is None:
        return WaitlistAnalyticsWrapper(analytics=await service.get_analytics())

    subscriptions = await service.get_product_subscriptions(product_id, variant_id)
    return WaitlistSubscriptionListResponse(
        subscriptions=[WaitlistSubscriptionResponse.model_validate(s) for s in subscriptions],
        total=len(subscriptions),
    )


# ==================== Readiness ====================

@router.get("/production-check", response_model=ProductionCheckResponse)
async def production_check(
    db: DB,
    admin: AdminUser,
):
    """Configuration and database readiness report."""
    return await ProductionCheckService(db).run_checks()
