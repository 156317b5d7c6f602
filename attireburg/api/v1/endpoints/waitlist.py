"""Public API endpoints for restock waitlists."""
from html import escape
from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query
from fastapi.responses import HTMLResponse

from attireburg.api.deps import DB
from attireburg.core.security import verify_unsubscribe_token
from attireburg.schemas.base import MessageResponse
from attireburg.schemas.waitlist import (
    WaitlistSubscribeRequest,
    WaitlistSubscribeResponse,
    WaitlistUnsubscribeRequest,
    SubscriptionStatusResponse,
    WaitlistSubscriptionListResponse,
    WaitlistSubscriptionResponse,
)
from attireburg.services.waitlist_service import WaitlistService


router = APIRouter(tags=["Waitlist"])


UNSUBSCRIBE_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    body {{ font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px; text-align: center; }}
    .message {{ padding: 20px; border-radius: 8px; }}
    .success {{ background: #d4edda; color: #155724; }}
    .error {{ background: #f8d7da; color: #721c24; }}
  </style>
</head>
<body>
  <div class="message {css_class}">
    <h1>{heading}</h1>
    {body}
  </div>
</body>
</html>"""


def _unsubscribe_page(success: bool, message: Optional[str] = None) -> HTMLResponse:
    if success:
        html = UNSUBSCRIBE_PAGE.format(
            title="Unsubscribed - Attireburg",
            css_class="success",
            heading="Successfully Unsubscribed",
            body=(
                "<p>You have been successfully removed from the waitlist.</p>\n"
                "    <p>You will no longer receive notifications for this product.</p>"
            ),
        )
        return HTMLResponse(content=html)

    html = UNSUBSCRIBE_PAGE.format(
        title="Unsubscribe Error - Attireburg",
        css_class="error",
        heading="Unsubscribe Error",
        body=f"<p>{escape(message or 'Unsubscribe failed')}</p>",
    )
    return HTMLResponse(content=html, status_code=status.HTTP_400_BAD_REQUEST)


@router.post("/subscribe", response_model=WaitlistSubscribeResponse)
async def subscribe(
    data: WaitlistSubscribeRequest,
    db: DB,
):
    """Subscribe an email to restock notifications for a product or variant."""
    service = WaitlistService(db)
    result = await service.subscribe(
        email=data.email,
        product_id=data.product_id,
        variant_id=data.variant_id,
        user_id=data.user_id,
    )
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])
    return result


@router.get("/subscribe", response_model=SubscriptionStatusResponse)
async def subscription_status(
    db: DB,
    email: str = Query(...),
    product_id: uuid.UUID = Query(..., alias="productId"),
    variant_id: Optional[uuid.UUID] = Query(None, alias="variantId"),
):
    service = WaitlistService(db)
    return SubscriptionStatusResponse(
        subscribed=await service.is_subscribed(email, product_id, variant_id)
    )


@router.delete("/unsubscribe", response_model=MessageResponse)
async def unsubscribe(
    data: WaitlistUnsubscribeRequest,
    db: DB,
):
    service = WaitlistService(db)
    result = await service.unsubscribe(data.email, data.product_id, data.variant_id)
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result["message"])
    return result


@router.get("/unsubscribe", response_class=HTMLResponse)
async def unsubscribe_link(
    db: DB,
    email: str = Query(...),
    product_id: str = Query(..., alias="productId"),
    variant_id: Optional[str] = Query(None, alias="variantId"),
    token: Optional[str] = Query(None),
):
    """One-click unsubscribe from a notification email. Answers with an HTML page."""
    if not verify_unsubscribe_token(token, email, product_id, variant_id):
        return _unsubscribe_page(False, "Invalid or expired unsubscribe link")

    try:
        product_uuid = uuid.UUID(product_id)
        variant_uuid = uuid.UUID(variant_id) if variant_id else None
    except ValueError:
        return _unsubscribe_page(False, "Invalid unsubscribe link")

    service = WaitlistService(db)
    result = await service.unsubscribe(email, product_uuid, variant_uuid)
    if not result["success"]:
        return _unsubscribe_page(False, result["message"])
    return _unsubscribe_page(True)


@router.get("/subscriptions", response_model=WaitlistSubscriptionListResponse)
async def customer_subscriptions(
    db: DB,
    email: str = Query(...),
):
    """Active subscriptions of an email with expected restock dates."""
    service = WaitlistService(db)
    subscriptions = await service.get_customer_subscriptions(email)
    return WaitlistSubscriptionListResponse(
        subscriptions=[WaitlistSubscriptionResponse.model_validate(s) for s in subscriptions],
        total=len(subscriptions),
    )
