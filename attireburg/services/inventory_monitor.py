"""
Inventory Monitor

Coordinates what happens when stock for a product or variant goes up:
restock date closed, waiting backorders fulfilled in priority order,
customers told, waitlist notified.
"""
from typing import Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from attireburg.config import settings
from attireburg.models.order import Order, OrderType, format_order_number
from attireburg.models.product import Product, ProductVariant
from attireburg.models.user import User
from attireburg.models.waitlist import WaitlistSubscription
from attireburg.services.backorder_service import BackorderService
from attireburg.services.email_service import EmailService
from attireburg.services.inventory_service import InventoryService
from attireburg.services.notification_service import NotificationService, FulfillmentNotificationData
from attireburg.services.order_state_machine import OrderStatus
from attireburg.services.restock_service import RestockService


logger = logging.getLogger(__name__)


class InventoryMonitor:
    """Restock event coordinator."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.backorders = BackorderService(db)
        self.restock = RestockService(db)
        self.inventory = InventoryService(db)
        self.notifications = NotificationService(db, email_service)

    async def process_inventory_update(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID],
        previous_stock: int,
        new_stock: int,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        React to a stock change. Nothing happens unless stock increased.

        The increase is the quantity offered to waiting backorders.
        notifications_sent counts fulfillment emails plus notified waitlist
        subscriptions, so a consolidated email for three items counts three.
        """
        backorders_fulfilled = 0
        notifications_sent = 0

        if new_stock > previous_stock:
            restocked_quantity = new_stock - previous_stock

            await self.restock.mark_restocked(product_id, variant_id)

            fulfillment = await self.backorders.fulfill_backorders(
                product_id,
                restocked_quantity,
                variant_id,
                changed_by=changed_by,
            )
            backorders_fulfilled = len(fulfillment["fulfilled_orders"])

            for order_id in fulfillment["fulfilled_orders"]:
                if await self._notify_fulfilled(order_id, product_id, variant_id):
                    notifications_sent += 1

            waitlist = await self.notifications.send_restock_notifications_for_product(product_id, variant_id)
            notifications_sent += waitlist["subscriptions_notified"]

        message = (
            f"Processed inventory update: {backorders_fulfilled} backorders fulfilled, "
            f"{notifications_sent} notifications sent"
        )
        logger.info(f"{message} ({product_id}/{variant_id}, {previous_stock} -> {new_stock})")
        return {
            "success": True,
            "backorders_fulfilled": backorders_fulfilled,
            "notifications_sent": notifications_sent,
            "message": message,
        }

    async def _notify_fulfilled(
        self,
        order_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID],
    ) -> bool:
        backorder = await self.backorders.get_backorder_status(order_id)
        if not backorder:
            return False

        user = await self.db.get(User, backorder["user_id"])
        if not user:
            return False

        item = next(
            (i for i in backorder["items"] if i["product_id"] == product_id and i["variant_id"] == variant_id),
            backorder["items"][0],
        )
        result = await self.notifications.send_fulfillment_notification(FulfillmentNotificationData(
            email=user.email,
            product_name=item["product_name"] or "",
            order_number=format_order_number(backorder["id"], length=8, prefix=""),
            order_url=f"{settings.BASE_URL.rstrip('/')}/account/backorders",
            variant_sku=item["variant_sku"],
            order_id=backorder["id"],
        ))
        return result["success"]

    async def trigger_restock_processing(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        new_stock: Optional[int] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Manual restock event.

        With new_stock the stored stock is set first and the change from the
        old value is processed. Without it the current stock is treated as
        freshly arrived.

        Raises:
            ValueError: If the product or variant does not exist
        """
        if new_stock is not None:
            previous_stock = await self.inventory.update_stock(product_id, new_stock, variant_id)
        else:
            current = await self.inventory.get_stock(product_id, variant_id)
            if current is None:
                raise ValueError("Product variant not found" if variant_id else "Product not found")
            previous_stock, new_stock = 0, current

        return await self.process_inventory_update(
            product_id,
            variant_id,
            previous_stock,
            new_stock,
            changed_by=changed_by,
        )

    async def get_monitoring_stats(self) -> dict:
        backorder = Order.order_type == OrderType.BACKORDER.value
        return {
            "total_backorders": await self.db.scalar(select(func.count(Order.id)).where(backorder)) or 0,
            "pending_backorders": await self.db.scalar(
                select(func.count(Order.id)).where(backorder, Order.status == OrderStatus.PENDING)
            ) or 0,
            "total_waitlist_subscriptions": await self.db.scalar(
                select(func.count(WaitlistSubscription.id))
            ) or 0,
            "active_waitlist_subscriptions": await self.db.scalar(
                select(func.count(WaitlistSubscription.id)).where(WaitlistSubscription.is_active == True)
            ) or 0,
            "out_of_stock_products": await self.db.scalar(
                select(func.count(Product.id)).where(Product.is_active == True, Product.stock <= 0)
            ) or 0,
            "out_of_stock_variants": await self.db.scalar(
                select(func.count(ProductVariant.id)).where(ProductVariant.is_active == True, ProductVariant.stock <= 0)
            ) or 0,
        }
