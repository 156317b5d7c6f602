"""Admin API endpoints for expected restock dates."""
from typing import Optional, Union
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB, AdminUser
from attireburg.schemas.base import MessageResponse
from attireburg.schemas.restock import (
    RestockDateRequest,
    RestockDateResponse,
    RestockScheduleResponse,
    RestockHistoryResponse,
    UpcomingRestockResponse,
    UpcomingRestocksResponse,
    BulkRestockResponse,
    ExpiredRestockResponse,
)
from attireburg.services.restock_service import RestockService


router = APIRouter(tags=["Restock Dates"])


@router.get(
    "",
    response_model=Union[RestockDateResponse, UpcomingRestocksResponse],
)
async def get_restock_dates(
    db: DB,
    admin: AdminUser,
    product_id: Optional[uuid.UUID] = Query(None, alias="productId"),
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
    history: bool = Query(False),
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    """
    Restock date of one product/variant, or all upcoming restocks when
    productId is omitted.
    """
    service = RestockService(db)

    if product_id is None:
        upcoming = await service.get_upcoming_restocks(limit)
        return UpcomingRestocksResponse(
            upcoming_restocks=[UpcomingRestockResponse.model_validate(u) for u in upcoming],
            total=len(upcoming),
        )

    schedule = await service.get_restock_date(product_id, variant_id)
    response = RestockDateResponse(
        restock_date=RestockScheduleResponse.model_validate(schedule) if schedule else None,
    )
    if history:
        response.history = [
            RestockHistoryResponse.model_validate(h)
            for h in await service.get_restock_history(product_id, variant_id)
        ]
    return response


@router.post(
    "",
    response_model=Union[BulkRestockResponse, MessageResponse],
)
async def set_restock_dates(
    data: RestockDateRequest,
    db: DB,
    admin: AdminUser,
):
    """Set one restock date, or several with {updates: [...]}."""
    service = RestockService(db)

    if data.updates is not None:
        result = await service.bulk_update_restock_dates(
            {**u.model_dump(), "changed_by": admin.id} for u in data.updates
        )
        if not result["success"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])
        return BulkRestockResponse(**result)

    result = await service.set_restock_date(
        product_id=data.product_id,
        variant_id=data.variant_id,
        expected_date=data.expected_date,
        notes=data.notes,
        changed_by=admin.id,
    )
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])
    return MessageResponse(**result)


@router.delete("", response_model=MessageResponse)
async def clear_restock_date(
    db: DB,
    admin: AdminUser,
    product_id: uuid.UUID = Query(..., alias="productId"),
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
):
    service = RestockService(db)
    result = await service.clear_restock_date(product_id, variant_id, changed_by=admin.id)
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])
    return result


@router.post("/expired", response_model=ExpiredRestockResponse)
async def process_expired_restock_dates(
    db: DB,
    admin: AdminUser,
):
    """Expire passed restock dates and send delay notifications."""
    service = RestockService(db)
    return await service.process_expired_restock_dates()
