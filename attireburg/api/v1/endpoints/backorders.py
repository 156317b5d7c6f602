"""Customer API endpoints for backorders."""
from typing import Optional, Union
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB
from attireburg.core.error_logger import error_logger
from attireburg.schemas.base import MessageResponse
from attireburg.schemas.backorder import (
    BackorderCreate,
    BackorderCreateResponse,
    BackorderCancelRequest,
    BackorderResponse,
    CustomerBackordersResponse,
)
from attireburg.services.backorder_service import BackorderService


router = APIRouter(tags=["Backorders"])


@router.post(
    "/create",
    response_model=BackorderCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_backorder(
    data: BackorderCreate,
    db: DB,
):
    """Place a backorder for out-of-stock items."""
    service = BackorderService(db)

    result = await service.create_backorder(
        user_id=data.user_id,
        items=[item.model_dump() for item in data.items],
        total_amount=data.total_amount,
        currency=data.currency,
        shipping_address=data.shipping_address,
        shipping_city=data.shipping_city,
        shipping_postal=data.shipping_postal,
        expected_fulfillment_date=data.expected_fulfillment_date,
        paypal_order_id=data.paypal_order_id,
        paypal_payer_id=data.paypal_payer_id,
    )

    if not result["success"]:
        error_logger.warn(
            f"Backorder rejected: {result['message']}",
            {
                "user_id": str(data.user_id),
                "item_count": len(data.items),
                "amount": str(data.total_amount),
                "endpoint": "/api/backorders/create",
            },
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])

    return result


@router.get(
    "/status",
    response_model=Union[BackorderResponse, CustomerBackordersResponse],
)
async def get_backorder_status(
    db: DB,
    order_id: Optional[str] = Query(None, alias="orderId"),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    """Status of one backorder (orderId) or all backorders of a customer (userId)."""
    service = BackorderService(db)

    if order_id:
        backorder = await service.get_backorder_status(order_id)
        if not backorder:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Backorder not found"
            )
        return BackorderResponse.model_validate(backorder)

    if user_id:
        backorders = await service.get_customer_backorders(user_id)
        return CustomerBackordersResponse(
            backorders=[BackorderResponse.model_validate(b) for b in backorders],
            total=len(backorders),
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="orderId or userId is required"
    )


@router.put("/cancel", response_model=MessageResponse)
async def cancel_backorder(
    data: BackorderCancelRequest,
    db: DB,
):
    service = BackorderService(db)
    result = await service.cancel_backorder(data.order_id, data.reason)

    if not result["success"]:
        code = status.HTTP_404_NOT_FOUND if result["message"] == "Order not found" else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=result["message"])

    return result
