"""API endpoints for customer notification emails and their tracking."""
from typing import Optional, Union

from fastapi import APIRouter, HTTPException, status, Query

from attireburg.api.deps import DB, AdminUser
from attireburg.schemas.base import MessageResponse
from attireburg.schemas.notifications import (
    RestockNotificationRequest,
    RestockFanoutResponse,
    TestNotificationRequest,
    NotificationSendResponse,
    NotificationTrackRequest,
    NotificationStatusResponse,
)
from attireburg.services.notification_service import NotificationService
from attireburg.services.waitlist_service import is_valid_email


router = APIRouter(tags=["Notifications"])

TRACK_ACTIONS = ("open", "click", "purchase")


@router.post("/restock", response_model=RestockFanoutResponse)
async def send_restock_notifications(
    data: RestockNotificationRequest,
    db: DB,
    admin: AdminUser,
):
    """Email every active waitlist subscriber of a product or variant."""
    service = NotificationService(db)
    return await service.send_restock_notifications_for_product(data.product_id, data.variant_id)


@router.post("/test", response_model=NotificationSendResponse)
async def send_test_notification(
    data: TestNotificationRequest,
    db: DB,
    admin: AdminUser,
):
    if not is_valid_email(data.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address")

    service = NotificationService(db)
    result = await service.send_test_notification(data.email)
    if not result["success"]:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result["message"])
    return result


@router.get("/status", response_model=Union[MessageResponse, NotificationStatusResponse])
async def notification_status(
    db: DB,
    notification_id: Optional[str] = Query(None, alias="notificationId"),
    action: Optional[str] = Query(None),
):
    """
    Track an engagement event (notificationId + action), or return
    notification analytics when no event is given.
    """
    service = NotificationService(db)

    if notification_id and action:
        if action not in TRACK_ACTIONS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")

        if action == "open":
            tracked = await service.track_email_open(notification_id)
        elif action == "click":
            tracked = await service.track_link_click(notification_id)
        else:
            tracked = await service.track_purchase_complete(notification_id)

        if not tracked:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
        return MessageResponse(success=True, message=f"{action} event tracked")

    return NotificationStatusResponse(analytics=await service.get_analytics())


@router.post("/status", response_model=MessageResponse)
async def track_open(
    data: NotificationTrackRequest,
    db: DB,
):
    if not data.notification_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notification ID is required")

    service = NotificationService(db)
    if not await service.track_email_open(data.notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return MessageResponse(success=True, message="Email open tracked")
