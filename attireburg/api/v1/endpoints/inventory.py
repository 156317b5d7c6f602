"""API endpoints for stock checks and restock events."""
from typing import Optional, Union
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB, AdminUser
from attireburg.config import settings
from attireburg.schemas.inventory import (
    InventoryCheckRequest,
    InventoryCheckResponse,
    StockInfoResponse,
    RestockEventRequest,
    RestockEventResponse,
    MonitoringStatsResponse,
    ProductStockResponse,
    LowStockResponse,
)
from attireburg.services.inventory_monitor import InventoryMonitor
from attireburg.services.inventory_service import InventoryService, InventoryItem


router = APIRouter(tags=["Inventory"])


@router.post("/restock", response_model=RestockEventResponse)
async def trigger_restock(
    data: RestockEventRequest,
    db: DB,
    admin: AdminUser,
):
    """
    Manual restock event.

    Closes the restock date, fulfills waiting backorders and notifies the
    waitlist when stock went up.
    """
    monitor = InventoryMonitor(db)
    try:
        return await monitor.trigger_restock_processing(
            product_id=data.product_id,
            variant_id=data.variant_id,
            new_stock=data.new_stock,
            changed_by=admin.id,
        )
    except ValueError as e:
        message = str(e)
        code = status.HTTP_404_NOT_FOUND if message.endswith("not found") else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=message)


@router.get("/restock", response_model=MonitoringStatsResponse)
async def monitoring_stats(
    db: DB,
):
    monitor = InventoryMonitor(db)
    return await monitor.get_monitoring_stats()


@router.post("/check", response_model=InventoryCheckResponse)
async def check_inventory(
    data: InventoryCheckRequest,
    db: DB,
):
    """Availability of a list of items, e.g. before checkout."""
    service = InventoryService(db)
    stock_info = await service.check_stock(
        InventoryItem(product_id=i.product_id, variant_id=i.variant_id, quantity=i.quantity)
        for i in data.items
    )
    return InventoryCheckResponse(
        available=all(s.available for s in stock_info),
        items=[StockInfoResponse.model_validate(s) for s in stock_info],
    )


@router.get("/status", response_model=Union[ProductStockResponse, LowStockResponse])
async def inventory_status(
    db: DB,
    admin: AdminUser,
    product_id: Optional[uuid.UUID] = Query(None, alias="productId"),
    threshold: int = Query(settings.LOW_STOCK_THRESHOLD, ge=0),
):
    """Stock of one product, or low-stock alerts when productId is omitted."""
    service = InventoryService(db)

    if product_id:
        product_stock = await service.get_product_stock(product_id)
        if not product_stock:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found"
            )
        return product_stock

    alerts = await service.get_low_stock_alerts(threshold)
    return LowStockResponse(threshold=threshold, **alerts)
