"""Waitlist Service: restock notification subscriptions per product/variant."""
from typing import Optional, List, Iterable
from datetime import datetime, timezone
import logging
import re
import uuid

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attireburg.models.product import Product, ProductVariant
from attireburg.models.restock import RestockSchedule
from attireburg.models.waitlist import WaitlistSubscription


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


class WaitlistService:
    """Service for waitlist subscriptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _identity(self, email: str, product_id: uuid.UUID, variant_id: Optional[uuid.UUID]):
        conditions = [
            WaitlistSubscription.email == normalize_email(email),
            WaitlistSubscription.product_id == product_id,
        ]
        if variant_id:
            conditions.append(WaitlistSubscription.variant_id == variant_id)
        else:
            conditions.append(WaitlistSubscription.variant_id.is_(None))
        return conditions

    async def _find(
        self,
        email: str,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        lock: bool = False,
    ) -> Optional[WaitlistSubscription]:
        query = (
            select(WaitlistSubscription)
            .where(*self._identity(email, product_id, variant_id))
            .order_by(WaitlistSubscription.is_active.desc(), WaitlistSubscription.created_at)
            .limit(1)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    # ==================== SUBSCRIBE / UNSUBSCRIBE ====================

    async def subscribe(
        self,
        email: str,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Subscribe an email to restock notifications.

        Idempotent per (email, product, variant): an active subscription is
        left alone, an inactive one is reactivated.
        """
        if not is_valid_email(email):
            return {"success": False, "message": "Invalid email address"}

        product = await self.db.get(Product, product_id)
        if not product:
            return {"success": False, "message": "Product not found"}

        if variant_id:
            variant = await self.db.get(ProductVariant, variant_id)
            if not variant or variant.product_id != product_id:
                return {"success": False, "message": "Product variant not found"}

        existing = await self._find(email, product_id, variant_id, lock=True)

        if existing and existing.is_active:
            return {
                "success": True,
                "message": "Already subscribed to waitlist for this product",
                "subscription_id": existing.id,
            }

        if existing:
            existing.is_active = True
            existing.notified_at = None
            if user_id:
                existing.user_id = user_id
            await self.db.flush()
            logger.info(f"Waitlist subscription reactivated: {existing.email} -> {product_id}/{variant_id}")
            return {
                "success": True,
                "message": "Waitlist subscription reactivated",
                "subscription_id": existing.id,
            }

        subscription = WaitlistSubscription(
            email=normalize_email(email),
            product_id=product_id,
            variant_id=variant_id,
            user_id=user_id,
            is_active=True,
        )
        self.db.add(subscription)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent request inserted the same subscription first
            await self.db.rollback()
            winner = await self._find(email, product_id, variant_id)
            if winner is None:
                raise
            logger.info(f"Waitlist subscription for {winner.email} -> {product_id}/{variant_id} already created")
            return {
                "success": True,
                "message": "Already subscribed to waitlist for this product",
                "subscription_id": winner.id,
            }

        logger.info(f"Waitlist subscription created: {subscription.email} -> {product_id}/{variant_id}")
        return {
            "success": True,
            "message": "Successfully subscribed to waitlist",
            "subscription_id": subscription.id,
        }

    async def unsubscribe(
        self,
        email: str,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> dict:
        """Deactivate the matching subscription."""
        subscription = await self._find(email, product_id, variant_id, lock=True)
        if not subscription or not subscription.is_active:
            return {"success": False, "message": "Subscription not found"}

        subscription.is_active = False
        await self.db.flush()

        logger.info(f"Waitlist subscription deactivated: {subscription.email} -> {product_id}/{variant_id}")
        return {"success": True, "message": "Successfully unsubscribed from waitlist"}

    async def is_subscribed(
        self,
        email: str,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> bool:
        result = await self.db.execute(
            select(func.count(WaitlistSubscription.id)).where(
                *self._identity(email, product_id, variant_id),
                WaitlistSubscription.is_active == True,
            )
        )
        return (result.scalar() or 0) > 0

    # ==================== LISTINGS ====================

    async def get_customer_subscriptions(self, email: str) -> List[dict]:
        """Active subscriptions of one email, newest first, for the account page."""
        try:
            result = await self.db.execute(
                select(WaitlistSubscription)
                .options(
                    selectinload(WaitlistSubscription.product),
                    selectinload(WaitlistSubscription.variant),
                )
                .where(
                    WaitlistSubscription.email == normalize_email(email),
                    WaitlistSubscription.is_active == True,
                )
                .order_by(WaitlistSubscription.created_at.desc())
            )
            subscriptions = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load waitlist subscriptions for {email}: {e}")
            return []

        restock_dates = await self._restock_dates(subscriptions)

        return [
            {
                **self._to_dict(sub),
                "expected_restock_date": restock_dates.get((sub.product_id, sub.variant_id)),
            }
            for sub in subscriptions
        ]

    async def get_product_subscriptions(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> List[dict]:
        """
        Active subscriptions for a product, oldest first.

        Without variant_id every subscription of the product is returned,
        variant-level ones included.
        """
        query = (
            select(WaitlistSubscription)
            .options(
                selectinload(WaitlistSubscription.product),
                selectinload(WaitlistSubscription.variant),
            )
            .where(
                WaitlistSubscription.product_id == product_id,
                WaitlistSubscription.is_active == True,
            )
            .order_by(WaitlistSubscription.created_at)
        )
        if variant_id:
            query = query.where(WaitlistSubscription.variant_id == variant_id)

        result = await self.db.execute(query)
        return [self._to_dict(sub) for sub in result.scalars().all()]

    async def mark_notified(self, subscription_ids: Iterable[uuid.UUID]) -> None:
        ids = list(subscription_ids)
        if not ids:
            return
        await self.db.execute(
            update(WaitlistSubscription)
            .where(WaitlistSubscription.id.in_(ids))
            .values(notified_at=datetime.now(timezone.utc))
        )

    # ==================== ANALYTICS ====================

    async def get_analytics(self) -> dict:
        total = await self.db.scalar(select(func.count(WaitlistSubscription.id))) or 0
        active = await self.db.scalar(
            select(func.count(WaitlistSubscription.id)).where(WaitlistSubscription.is_active == True)
        ) or 0

        by_product = await self.db.execute(
            select(Product.id, Product.name, func.count(WaitlistSubscription.id).label("count"))
            .join(Product, WaitlistSubscription.product_id == Product.id)
            .where(WaitlistSubscription.is_active == True)
            .group_by(Product.id, Product.name)
            .order_by(func.count(WaitlistSubscription.id).desc())
        )
        by_variant = await self.db.execute(
            select(ProductVariant.id, ProductVariant.sku, func.count(WaitlistSubscription.id).label("count"))
            .join(ProductVariant, WaitlistSubscription.variant_id == ProductVariant.id)
            .where(WaitlistSubscription.is_active == True)
            .group_by(ProductVariant.id, ProductVariant.sku)
            .order_by(func.count(WaitlistSubscription.id).desc())
        )

        return {
            "total_subscriptions": total,
            "active_subscriptions": active,
            "subscriptions_by_product": [
                {"product_id": pid, "product_name": name, "count": count}
                for pid, name, count in by_product.all()
            ],
            "subscriptions_by_variant": [
                {"variant_id": vid, "variant_sku": sku, "count": count}
                for vid, sku, count in by_variant.all()
            ],
        }

    # ==================== HELPERS ====================

    @staticmethod
    def _to_dict(sub: WaitlistSubscription) -> dict:
        return {
            "id": sub.id,
            "email": sub.email,
            "product_id": sub.product_id,
            "product_name": sub.product.name if sub.product else None,
            "variant_id": sub.variant_id,
            "variant_sku": sub.variant.sku if sub.variant else None,
            "user_id": sub.user_id,
            "is_active": sub.is_active,
            "notified_at": sub.notified_at,
            "created_at": sub.created_at,
        }

    async def _restock_dates(self, subscriptions) -> dict:
        product_ids = {sub.product_id for sub in subscriptions}
        if not product_ids:
            return {}
        result = await self.db.execute(
            select(RestockSchedule).where(RestockSchedule.product_id.in_(product_ids))
        )
        return {
            (schedule.product_id, schedule.variant_id): schedule.expected_date
            for schedule in result.scalars().all()
        }
