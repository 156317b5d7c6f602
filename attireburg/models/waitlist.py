import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attireburg.database import Base
from attireburg.db_types import UUIDType, UTCDateTime

if TYPE_CHECKING:
    from attireburg.models.product import Product, ProductVariant


class WaitlistSubscription(Base):
    """
    Request to be emailed when a product or variant is back in stock.
    One row per (email, product, variant); unsubscribing deactivates it.
    Enforced by one partial unique index for variant rows and one for
    product-level rows.
    """
    __tablename__ = "waitlist_subscriptions"
    __table_args__ = (
        Index(
            "uq_waitlist_email_variant", "email", "product_id", "variant_id",
            unique=True,
            postgresql_where=text("variant_id IS NOT NULL"),
            sqlite_where=text("variant_id IS NOT NULL"),
        ),
        Index(
            "uq_waitlist_email_product", "email", "product_id",
            unique=True,
            postgresql_where=text("variant_id IS NULL"),
            sqlite_where=text("variant_id IS NULL"),
        ),
        Index("ix_waitlist_product_active", "product_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product")
    variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")

    def __repr__(self) -> str:
        return f"<WaitlistSubscription(email='{self.email}', active={self.is_active})>"
