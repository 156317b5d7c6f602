"""API endpoints for order status."""
import uuid

from fastapi import APIRouter, HTTPException, status

from attireburg.api.deps import DB, CurrentUser, AdminUser
from attireburg.schemas.order import (
    OrderStatusUpdate,
    OrderCancelRequest,
    OrderStatusResponse,
)
from attireburg.services.order_status_service import OrderStatusService


router = APIRouter(tags=["Orders"])


@router.get("/{order_id}/status", response_model=OrderStatusResponse)
async def get_order_status(
    order_id: uuid.UUID,
    db: DB,
):
    service = OrderStatusService(db)
    order_status = await service.get_order_status(order_id)
    if not order_status:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return order_status


@router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Move an order through the status state machine."""
    service = OrderStatusService(db)
    result = await service.update_order_status(
        order_id,
        data.status.upper(),
        tracking_number=data.tracking_number,
        notes=data.notes,
        changed_by=admin.id,
        notify_customer=data.notify_customer,
    )

    if not result["success"]:
        code = status.HTTP_404_NOT_FOUND if result["error"] == "Order not found" else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=result["error"])

    return await service.get_order_status(order_id)


@router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(
    order_id: uuid.UUID,
    data: OrderCancelRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Customer cancellation of an own PENDING or PROCESSING order."""
    service = OrderStatusService(db)
    order_status = await service.cancel_order(order_id, current_user.id, data.reason)
    if not order_status:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found or cannot be cancelled"
        )
    return order_status
