"""Storefront API endpoints for product availability."""
from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB
from attireburg.schemas.restock import RestockDisplayResponse
from attireburg.services.inventory_service import InventoryService
from attireburg.services.restock_display import get_restock_display
from attireburg.services.restock_service import RestockService


router = APIRouter(tags=["Products"])


@router.get("/{product_id}/restock-display", response_model=RestockDisplayResponse)
async def get_product_restock_display(
    product_id: uuid.UUID,
    db: DB,
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
):
    """What the product page shows about the restock date of an item."""
    stock = await InventoryService(db).get_stock(product_id, variant_id)
    if stock is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product variant not found" if variant_id else "Product not found"
        )

    schedule = await RestockService(db).get_restock_date(product_id, variant_id)
    display = get_restock_display(stock, schedule["expected_date"] if schedule else None)

    return RestockDisplayResponse(
        product_id=product_id,
        variant_id=variant_id,
        stock=stock,
        **display,
    )
