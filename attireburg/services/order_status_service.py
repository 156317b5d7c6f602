"""
Order Status Service

Applies state machine transitions to stored orders and runs their side
effects: inventory restoration on cancellation and the shipping email.
"""
from typing import Optional, List
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attireburg.config import settings
from attireburg.models.order import Order, OrderStatusHistory
from attireburg.services.email_service import EmailService, get_email_service
from attireburg.services.inventory_service import InventoryService, items_from_order
from attireburg.services.order_state_machine import (
    OrderStatus,
    InvalidTransitionError,
    transition_order,
    get_allowed_transitions,
    get_status_label,
)


logger = logging.getLogger(__name__)

CUSTOMER_CANCELLABLE = [OrderStatus.PENDING, OrderStatus.PROCESSING]


class OrderStatusService:
    """Service for order status transitions."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()

    async def _get_order(self, order_id: uuid.UUID, lock: bool = False) -> Optional[Order]:
        query = (
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.user),
                selectinload(Order.status_history),
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _apply(
        self,
        order: Order,
        new_status: str,
        notes: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> str:
        """Transition, history row, and the inventory side effect of CANCELLED."""
        previous_status = transition_order(order, new_status)

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=previous_status,
            to_status=new_status,
            changed_by=changed_by,
            notes=notes,
        ))

        if new_status == OrderStatus.CANCELLED:
            restored = await InventoryService(self.db).restore_inventory(items_from_order(order))
            if not restored.success:
                logger.warning(f"Order {order.order_number} cancelled with restore errors: {restored.errors}")

        await self.db.flush()
        return previous_status

    # ==================== UPDATE ====================

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: str,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
        notify_customer: bool = True,
    ) -> dict:
        """
        Move an order to new_status.

        Returns:
            {"success": True} or {"success": False, "error": str}
        """
        order = await self._get_order(order_id, lock=True)
        if not order:
            return {"success": False, "error": "Order not found"}

        try:
            previous_status = await self._apply(order, new_status, notes, changed_by)
        except InvalidTransitionError as e:
            return {"success": False, "error": str(e)}

        if new_status == OrderStatus.SHIPPED and tracking_number:
            order.tracking_number = tracking_number
            await self.db.flush()

        logger.info(f"Order {order.order_number}: {previous_status} -> {new_status}")

        if new_status == OrderStatus.SHIPPED and notify_customer:
            self._send_shipping_notification(order)

        return {"success": True}

    def _send_shipping_notification(self, order: Order) -> None:
        if not order.user:
            return
        sent = self.email_service.send_order_shipped_email(
            to_email=order.user.email,
            order_number=order.order_number,
            customer_name=order.user.name,
            tracking_number=order.tracking_number,
            base_url=settings.BASE_URL,
        )
        if not sent:
            logger.warning(f"Shipping notification for order {order.order_number} was not sent")

    # ==================== CUSTOMER CANCEL ====================

    async def cancel_order(
        self,
        order_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Cancel a customer's own PENDING or PROCESSING order.

        Returns None when the order does not exist, belongs to someone else
        or is past the cancellable states.
        """
        order = await self._get_order(order_id, lock=True)
        if not order or order.user_id != user_id or order.status not in CUSTOMER_CANCELLABLE:
            return None

        order.cancellation_reason = reason
        await self._apply(order, OrderStatus.CANCELLED, reason or "Cancelled by customer", user_id)

        logger.info(f"Order {order.order_number} cancelled by customer {user_id}")
        return await self.get_order_status(order_id)

    # ==================== READ ====================

    async def get_order_status(self, order_id: uuid.UUID) -> Optional[dict]:
        order = await self._get_order(order_id)
        if not order:
            return None

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "order_type": order.order_type,
            "status": order.status,
            "status_label": get_status_label(order.status, "de"),
            "status_label_en": get_status_label(order.status, "en"),
            "tracking_number": order.tracking_number,
            "cancellation_reason": order.cancellation_reason,
            "available_transitions": self.get_available_transitions(order.status),
            "history": [
                {
                    "from_status": h.from_status,
                    "to_status": h.to_status,
                    "notes": h.notes,
                    "changed_by": h.changed_by,
                    "created_at": h.created_at,
                }
                for h in order.status_history
            ],
        }

    async def get_orders_by_status(self, status: str, limit: int = 100) -> List[dict]:
        result = await self.db.execute(
            select(Order)
            .where(Order.status == status)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        return [
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "order_type": order.order_type,
                "status": order.status,
                "total_amount": order.total_amount,
                "created_at": order.created_at,
            }
            for order in result.scalars().all()
        ]

    @staticmethod
    def get_available_transitions(status: str) -> List[str]:
        return get_allowed_transitions(status)
