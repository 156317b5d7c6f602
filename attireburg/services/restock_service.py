"""
Restock Service for expected restock dates per product or variant.

A schedule row exists per (product_id, variant_id). Every change appends a
RestockHistory row, so the history reads as an audit trail of the schedule.
"""
from typing import Optional, List, Iterable
from datetime import datetime, timezone
import logging
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attireburg.db_types import as_utc
from attireburg.models.order import Order, OrderItem, OrderStatus, OrderType
from attireburg.models.product import Product, ProductVariant
from attireburg.models.restock import RestockSchedule, RestockHistory, RestockAction
from attireburg.models.waitlist import WaitlistSubscription
from attireburg.services.notification_service import (
    NotificationService,
    DelayNotificationData,
    build_cancellation_url,
)


logger = logging.getLogger(__name__)


def _item_filter(model, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]):
    if variant_id:
        return and_(model.product_id == product_id, model.variant_id == variant_id)
    return and_(model.product_id == product_id, model.variant_id.is_(None))


class RestockService:
    """Service for restock schedules and their history."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_schedule(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        lock: bool = False,
    ) -> Optional[RestockSchedule]:
        query = select(RestockSchedule).where(_item_filter(RestockSchedule, product_id, variant_id))
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _validate_item(self, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]) -> Optional[str]:
        product = await self.db.get(Product, product_id)
        if not product:
            return "Product not found"
        if variant_id:
            variant = await self.db.get(ProductVariant, variant_id)
            if not variant or variant.product_id != product_id:
                return "Product variant not found"
        return None

    def _record(
        self,
        schedule: RestockSchedule,
        action: RestockAction,
        previous_date: Optional[datetime],
        notes: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> None:
        self.db.add(RestockHistory(
            product_id=schedule.product_id,
            variant_id=schedule.variant_id,
            action=action.value,
            expected_date=schedule.expected_date,
            previous_date=previous_date,
            notes=notes,
            changed_by=changed_by,
        ))

    # ==================== SET / GET / CLEAR ====================

    async def set_restock_date(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        expected_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Set the expected restock date of one product or variant.

        expected_date=None stores an explicit "no date" state. Other
        variants of the same product are never touched.
        """
        error = await self._validate_item(product_id, variant_id)
        if error:
            return {"success": False, "message": error}

        expected_date = as_utc(expected_date)
        if expected_date is not None and expected_date <= datetime.now(timezone.utc):
            return {"success": False, "message": "Expected restock date must be in the future"}

        schedule = await self._get_schedule(product_id, variant_id, lock=True)
        previous_date = schedule.expected_date if schedule else None

        if schedule is None:
            schedule = RestockSchedule(product_id=product_id, variant_id=variant_id)
            self.db.add(schedule)

        schedule.expected_date = expected_date
        schedule.actual_date = None
        schedule.notes = notes

        action = RestockAction.SET if expected_date else RestockAction.CLEARED
        self._record(schedule, action, previous_date, notes, changed_by)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent restock date insert for {product_id}/{variant_id}: {e}")
            return {"success": False, "message": "Restock date was changed concurrently, please retry"}

        logger.info(f"Restock date for {product_id}/{variant_id} set to {expected_date}")
        return {"success": True, "message": "Restock date updated successfully"}

    async def get_restock_date(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> Optional[dict]:
        """Current schedule of the pair, or None. Never raises."""
        try:
            schedule = await self._get_schedule(product_id, variant_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load restock date for {product_id}/{variant_id}: {e}")
            return None

        if not schedule:
            return None
        return self._to_dict(schedule)

    async def clear_restock_date(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> dict:
        schedule = await self._get_schedule(product_id, variant_id, lock=True)
        if not schedule or schedule.expected_date is None:
            return {"success": False, "message": "No restock date to clear"}

        previous_date = schedule.expected_date
        schedule.expected_date = None
        schedule.actual_date = datetime.now(timezone.utc)

        self._record(schedule, RestockAction.CLEARED, previous_date, changed_by=changed_by)
        await self.db.flush()

        logger.info(f"Restock date for {product_id}/{variant_id} cleared")
        return {"success": True, "message": "Restock date cleared successfully"}

    async def mark_restocked(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Close the schedule because stock arrived. False when there was nothing to close."""
        schedule = await self._get_schedule(product_id, variant_id, lock=True)
        if not schedule or schedule.expected_date is None:
            return False

        previous_date = schedule.expected_date
        schedule.expected_date = None
        schedule.actual_date = datetime.now(timezone.utc)
        self._record(schedule, RestockAction.RESTOCKED, previous_date, notes="Stock received")
        await self.db.flush()
        return True

    # ==================== BULK ====================

    async def bulk_update_restock_dates(self, updates: Iterable[dict]) -> dict:
        """
        Apply each update independently.

        Each update is {product_id, variant_id?, expected_date?, notes?}.
        Failed entries are skipped and reported in errors.
        """
        updates = list(updates)
        updated = 0
        errors: List[str] = []

        for index, update in enumerate(updates):
            result = await self.set_restock_date(
                product_id=update["product_id"],
                variant_id=update.get("variant_id"),
                expected_date=update.get("expected_date"),
                notes=update.get("notes"),
                changed_by=update.get("changed_by"),
            )

            if result["success"]:
                updated += 1
            else:
                errors.append(f"Update {index + 1}: {result['message']}")

        return {
            "success": updated > 0 or not updates,
            "message": f"Updated {updated} of {len(updates)} restock dates",
            "updated_count": updated,
            "errors": errors,
        }

    # ==================== LISTINGS ====================

    async def get_upcoming_restocks(self, limit: Optional[int] = None) -> List[dict]:
        """Future schedules, soonest first, with waitlist and backorder counts."""
        query = (
            select(RestockSchedule, Product.name, ProductVariant.sku)
            .join(Product, RestockSchedule.product_id == Product.id)
            .outerjoin(ProductVariant, RestockSchedule.variant_id == ProductVariant.id)
            .where(RestockSchedule.expected_date > datetime.now(timezone.utc))
            .order_by(RestockSchedule.expected_date)
        )
        if limit:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load upcoming restocks: {e}")
            return []

        upcoming = []
        for schedule, product_name, variant_sku in rows:
            upcoming.append({
                **self._to_dict(schedule),
                "product_name": product_name,
                "variant_sku": variant_sku,
                "waitlist_count": await self._waitlist_count(schedule.product_id, schedule.variant_id),
                "backorder_count": await self._backorder_count(schedule.product_id, schedule.variant_id),
            })
        return upcoming

    async def get_restock_history(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> List[dict]:
        """History of the pair, most recent change first."""
        result = await self.db.execute(
            select(RestockHistory)
            .where(_item_filter(RestockHistory, product_id, variant_id))
            .order_by(RestockHistory.created_at.desc())
        )
        return [
            {
                "id": h.id,
                "product_id": h.product_id,
                "variant_id": h.variant_id,
                "action": h.action,
                "expected_date": h.expected_date,
                "previous_date": h.previous_date,
                "notes": h.notes,
                "changed_by": h.changed_by,
                "created_at": h.created_at,
                "updated_at": h.updated_at,
            }
            for h in result.scalars().all()
        ]

    # ==================== EXPIRY ====================

    async def process_expired_restock_dates(self) -> dict:
        """
        Expire schedules whose date has passed and tell waiting backorder
        customers about the delay.
        """
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(RestockSchedule)
            .where(
                RestockSchedule.expected_date.is_not(None),
                RestockSchedule.expected_date <= now,
            )
            .with_for_update()
        )
        expired = result.scalars().all()

        notifications = NotificationService(self.db)
        notifications_sent = 0

        for schedule in expired:
            original_date = schedule.expected_date
            note = f"Previous expected date {original_date.strftime('%Y-%m-%d')} has passed"

            schedule.expected_date = None
            schedule.notes = note
            self._record(schedule, RestockAction.EXPIRED, original_date, notes=note)

            for order, item in await self._pending_backorders_for(schedule.product_id, schedule.variant_id):
                if not order.user:
                    continue
                sent = await notifications.send_delay_notification(DelayNotificationData(
                    email=order.user.email,
                    product_name=item.product.name if item.product else "",
                    order_number=order.order_number,
                    original_date=original_date,
                    cancellation_url=build_cancellation_url(order.id),
                    order_id=order.id,
                ))
                if sent["success"]:
                    notifications_sent += 1

        await self.db.flush()

        if expired:
            logger.info(f"Expired {len(expired)} restock date(s), sent {notifications_sent} delay notification(s)")
        return {"processed_count": len(expired), "notifications_sent": notifications_sent}

    # ==================== HELPERS ====================

    @staticmethod
    def _to_dict(schedule: RestockSchedule) -> dict:
        return {
            "id": schedule.id,
            "product_id": schedule.product_id,
            "variant_id": schedule.variant_id,
            "expected_date": schedule.expected_date,
            "actual_date": schedule.actual_date,
            "notes": schedule.notes,
            "created_at": schedule.created_at,
            "updated_at": schedule.updated_at,
        }

    async def _waitlist_count(self, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]) -> int:
        result = await self.db.execute(
            select(func.count(WaitlistSubscription.id)).where(
                _item_filter(WaitlistSubscription, product_id, variant_id),
                WaitlistSubscription.is_active == True,
            )
        )
        return result.scalar() or 0

    async def _backorder_count(self, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]) -> int:
        result = await self.db.execute(
            select(func.count(func.distinct(Order.id)))
            .join(OrderItem, OrderItem.order_id == Order.id)
            .where(
                Order.order_type == OrderType.BACKORDER.value,
                Order.status == OrderStatus.PENDING.value,
                _item_filter(OrderItem, product_id, variant_id),
            )
        )
        return result.scalar() or 0

    async def _pending_backorders_for(self, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]):
        result = await self.db.execute(
            select(Order, OrderItem)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .options(
                selectinload(Order.user),
                selectinload(OrderItem.product),
            )
            .execution_options(populate_existing=True)
            .where(
                Order.order_type == OrderType.BACKORDER.value,
                Order.status == OrderStatus.PENDING.value,
                _item_filter(OrderItem, product_id, variant_id),
            )
            .order_by(Order.backorder_priority)
        )
        return result.all()
