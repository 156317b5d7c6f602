"""
Backorder Service

Backorders are orders with order_type='backorder' for items that are out of
stock. Each one gets a priority from a persistent, strictly increasing
sequence; fulfillment always serves the lowest priority first.
"""
from typing import Optional, List, Tuple, Iterable
from datetime import datetime, timezone
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select, func, and_, exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attireburg.db_types import as_utc
from attireburg.models.order import Order, OrderItem, OrderStatusHistory, OrderType
from attireburg.models.product import Product, ProductVariant
from attireburg.models.sequence import NumberSequence, BACKORDER_PRIORITY_SEQUENCE
from attireburg.models.user import User
from attireburg.services.inventory_service import InventoryService, items_from_order
from attireburg.services.order_state_machine import OrderStatus, transition_order


logger = logging.getLogger(__name__)

# CONFIRMED is never reached by a backorder before fulfillment
BACKORDER_CANCELLABLE = [OrderStatus.PENDING, OrderStatus.PROCESSING]


def _parse_id(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


def _item_filter(product_id: uuid.UUID, variant_id: Optional[uuid.UUID]):
    if variant_id:
        return and_(OrderItem.product_id == product_id, OrderItem.variant_id == variant_id)
    return and_(OrderItem.product_id == product_id, OrderItem.variant_id.is_(None))


class BackorderService:
    """Service for backorder lifecycle and FIFO fulfillment."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== PRIORITY ====================

    async def _next_priority(self) -> int:
        """
        Next backorder priority.

        The sequence row is locked FOR UPDATE, so concurrent transactions
        queue behind each other and never receive the same value.
        """
        result = await self.db.execute(
            select(NumberSequence)
            .where(NumberSequence.name == BACKORDER_PRIORITY_SEQUENCE)
            .with_for_update()
        )
        sequence = result.scalar_one_or_none()

        if not sequence:
            sequence = NumberSequence(name=BACKORDER_PRIORITY_SEQUENCE, current_value=0)
            self.db.add(sequence)
            await self.db.flush()

        return sequence.next_value()

    # ==================== CREATE ====================

    async def create_backorder(
        self,
        user_id: uuid.UUID,
        items: Iterable[dict],
        total_amount: Decimal,
        shipping_address: str,
        shipping_city: str,
        shipping_postal: str,
        currency: str = "EUR",
        expected_fulfillment_date: Optional[datetime] = None,
        paypal_order_id: Optional[str] = None,
        paypal_payer_id: Optional[str] = None,
    ) -> dict:
        """
        Create a PENDING backorder.

        Every item must refer to an existing product (and variant) that does
        not have enough stock for the requested quantity.

        Items: [{product_id, variant_id?, quantity, size, color?, price}]
        """
        items = list(items)
        if not items:
            return {"success": False, "message": "Backorder must contain at least one item"}

        user = await self.db.get(User, user_id)
        if not user:
            return {"success": False, "message": "User not found"}

        for item in items:
            if item["quantity"] <= 0:
                return {"success": False, "message": f"Invalid quantity {item['quantity']}"}

            product = await self.db.get(Product, item["product_id"])
            if not product:
                return {"success": False, "message": "Product not found"}

            variant_id = item.get("variant_id")
            if variant_id:
                variant = await self.db.get(ProductVariant, variant_id)
                if not variant or variant.product_id != product.id:
                    return {"success": False, "message": "Product variant not found"}
                if variant.stock >= item["quantity"]:
                    return {
                        "success": False,
                        "message": f"Product variant {variant.sku} is in stock and cannot be backordered",
                    }
            elif product.stock >= item["quantity"]:
                return {
                    "success": False,
                    "message": f"Product {product.name} is in stock and cannot be backordered",
                }

        priority = await self._next_priority()

        order = Order(
            user_id=user_id,
            order_type=OrderType.BACKORDER.value,
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            currency=currency,
            shipping_address=shipping_address,
            shipping_city=shipping_city,
            shipping_postal=shipping_postal,
            payment_method="PAYPAL" if paypal_order_id else None,
            paypal_order_id=paypal_order_id,
            paypal_payer_id=paypal_payer_id,
            backorder_priority=priority,
            expected_fulfillment_date=as_utc(expected_fulfillment_date),
        )
        order.items = [
            OrderItem(
                product_id=item["product_id"],
                variant_id=item.get("variant_id"),
                quantity=item["quantity"],
                size=item["size"],
                color=item.get("color"),
                price=item["price"],
            )
            for item in items
        ]
        order.status_history = [
            OrderStatusHistory(
                from_status=None,
                to_status=OrderStatus.PENDING,
                changed_by=user_id,
                notes="Backorder placed",
            )
        ]
        self.db.add(order)
        await self.db.flush()

        logger.info(f"Backorder {order.order_number} created for user {user_id} with priority {priority}")
        return {
            "success": True,
            "order_id": order.id,
            "message": "Backorder created successfully",
        }

    # ==================== READ ====================

    def _with_items(self):
        return (
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.items).selectinload(OrderItem.variant),
            )
            .execution_options(populate_existing=True)
        )

    async def get_backorder_status(self, order_id) -> Optional[dict]:
        """BackorderInfo for a backorder, None for unknown ids and regular orders."""
        order_id = _parse_id(order_id)
        if not order_id:
            return None

        try:
            result = await self.db.execute(self._with_items().where(Order.id == order_id))
            order = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load backorder {order_id}: {e}")
            return None

        if not order or not order.is_backorder:
            return None
        return self._to_info(order)

    async def get_customer_backorders(self, user_id) -> List[dict]:
        user_id = _parse_id(user_id)
        if not user_id:
            return []

        result = await self.db.execute(
            self._with_items()
            .where(
                Order.user_id == user_id,
                Order.order_type == OrderType.BACKORDER.value,
            )
            .order_by(Order.created_at.desc())
        )
        return [self._to_info(order) for order in result.scalars().all()]

    async def get_pending_backorders(
        self,
        product_id: Optional[uuid.UUID] = None,
        variant_id: Optional[uuid.UUID] = None,
    ) -> List[dict]:
        """PENDING backorders in fulfillment order (lowest priority first)."""
        query = (
            self._with_items()
            .where(
                Order.order_type == OrderType.BACKORDER.value,
                Order.status == OrderStatus.PENDING,
            )
            .order_by(Order.backorder_priority, Order.created_at)
        )
        if product_id:
            query = query.where(self._contains(product_id, variant_id))

        result = await self.db.execute(query)
        return [self._to_info(order) for order in result.scalars().all()]

    async def list_backorders(
        self,
        status: Optional[str] = OrderStatus.PENDING,
        product_id: Optional[uuid.UUID] = None,
        variant_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[dict], int]:
        """Admin listing. status "ALL" (or None) disables the status filter."""
        conditions = [Order.order_type == OrderType.BACKORDER.value]
        if status and status != "ALL":
            conditions.append(Order.status == status)
        if product_id:
            conditions.append(self._contains(product_id, variant_id))

        total = await self.db.scalar(select(func.count(Order.id)).where(*conditions)) or 0

        result = await self.db.execute(
            self._with_items()
            .where(*conditions)
            .order_by(Order.backorder_priority)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [self._to_info(order) for order in result.scalars().all()], total

    async def get_backorder_statistics(self) -> dict:
        result = await self.db.execute(
            select(Order.status, func.count(Order.id))
            .where(Order.order_type == OrderType.BACKORDER.value)
            .group_by(Order.status)
        )
        by_status = {status: 0 for status in OrderStatus.all()}
        by_status.update({status: count for status, count in result.all()})
        return {"total": sum(by_status.values()), "by_status": by_status}

    # ==================== CANCEL ====================

    async def cancel_backorder(
        self,
        order_id,
        reason: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Cancel a PENDING or PROCESSING backorder and restore its inventory.

        Other backorders keep their priorities.
        """
        order_id = _parse_id(order_id)
        order = None
        if order_id:
            result = await self.db.execute(
                select(Order)
                .options(selectinload(Order.items))
                .where(Order.id == order_id)
                .with_for_update()
            )
            order = result.scalar_one_or_none()

        if not order:
            return {"success": False, "message": "Order not found"}

        if not order.is_backorder:
            return {"success": False, "message": "Order is not a backorder"}

        if order.status not in BACKORDER_CANCELLABLE:
            return {"success": False, "message": "Order cannot be cancelled in current status"}

        previous_status = transition_order(order, OrderStatus.CANCELLED)
        order.cancellation_reason = reason

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=previous_status,
            to_status=OrderStatus.CANCELLED,
            changed_by=changed_by,
            notes=reason or "Backorder cancelled",
        ))

        restored = await InventoryService(self.db).restore_inventory(items_from_order(order))
        if not restored.success:
            logger.warning(f"Backorder {order.order_number} cancelled with restore errors: {restored.errors}")

        await self.db.flush()

        logger.info(f"Backorder {order.order_number} cancelled (was {previous_status})")
        return {"success": True, "message": "Backorder cancelled successfully"}

    # ==================== FULFILL ====================

    async def fulfill_backorders(
        self,
        product_id: uuid.UUID,
        available_quantity: int,
        variant_id: Optional[uuid.UUID] = None,
        fulfillment_date: Optional[datetime] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Move PENDING backorders for an item to PROCESSING in priority order.

        Walks the queue while the order's quantity of the item fits into the
        remaining quantity. The first order that does not fit stops the walk;
        orders are never split and later orders never jump the queue.

        The offer is capped at the item's current stock, and every fulfilled
        order takes its units out of stock in the same transaction, so a unit
        is allocated to at most one backorder or checkout.
        """
        fulfillment_date = as_utc(fulfillment_date) or datetime.now(timezone.utc)

        stock_row = await InventoryService(self.db)._get_stock_row(product_id, variant_id, lock=True)
        if stock_row is None:
            return {
                "success": False,
                "fulfilled_orders": [],
                "remaining_quantity": 0,
                "message": "Product variant not found" if variant_id else "Product not found",
            }
        offered = max(0, min(available_quantity, stock_row.stock))

        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(
                Order.order_type == OrderType.BACKORDER.value,
                Order.status == OrderStatus.PENDING,
                self._contains(product_id, variant_id),
            )
            .order_by(Order.backorder_priority, Order.created_at)
            .with_for_update()
        )
        queue = result.scalars().all()

        remaining = offered
        fulfilled: List[uuid.UUID] = []

        for order in queue:
            if remaining <= 0:
                break

            quantity = sum(
                item.quantity
                for item in order.items
                if item.product_id == product_id and item.variant_id == variant_id
            )
            if quantity > remaining:
                break

            # PENDING -> CONFIRMED -> PROCESSING, both steps recorded
            for target in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING):
                previous_status = transition_order(order, target)
                self.db.add(OrderStatusHistory(
                    order_id=order.id,
                    from_status=previous_status,
                    to_status=target,
                    changed_by=changed_by,
                    notes="Backorder fulfilled from restocked inventory",
                ))
            order.expected_fulfillment_date = fulfillment_date

            fulfilled.append(order.id)
            remaining -= quantity
            stock_row.stock -= quantity

        await self.db.flush()

        logger.info(
            f"Fulfilled {len(fulfilled)} backorders for {product_id}/{variant_id}, "
            f"{remaining} of {offered} offered units left"
        )
        return {
            "success": True,
            "fulfilled_orders": fulfilled,
            "remaining_quantity": remaining,
            "message": f"Fulfilled {len(fulfilled)} backorders",
        }

    # ==================== HELPERS ====================

    @staticmethod
    def _contains(product_id: uuid.UUID, variant_id: Optional[uuid.UUID]):
        return exists().where(
            OrderItem.order_id == Order.id,
            _item_filter(product_id, variant_id),
        )

    @staticmethod
    def _to_info(order: Order) -> dict:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "order_type": order.order_type,
            "status": order.status,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "expected_fulfillment_date": order.expected_fulfillment_date,
            "backorder_priority": order.backorder_priority or 0,
            "cancellation_reason": order.cancellation_reason,
            "created_at": order.created_at,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "product_name": item.product.name if item.product else None,
                    "variant_id": item.variant_id,
                    "variant_sku": item.variant.sku if item.variant else None,
                    "quantity": item.quantity,
                    "size": item.size,
                    "color": item.color,
                    "price": item.price,
                }
                for item in order.items
            ],
        }
