import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, ForeignKey, Text, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from attireburg.database import Base
from attireburg.db_types import UUIDType, UTCDateTime


class RestockAction(str, Enum):
    """Kind of change recorded in restock history."""
    SET = "SET"
    CLEARED = "CLEARED"
    EXPIRED = "EXPIRED"
    RESTOCKED = "RESTOCKED"


class RestockSchedule(Base):
    """
    Current expected restock date for a product or one of its variants.

    variant_id NULL means the product-level schedule. expected_date NULL
    with a row present means "no date" was set explicitly.
    """
    __tablename__ = "restock_schedules"
    __table_args__ = (
        Index(
            "uq_restock_variant", "product_id", "variant_id",
            unique=True,
            postgresql_where=text("variant_id IS NOT NULL"),
            sqlite_where=text("variant_id IS NOT NULL"),
        ),
        Index(
            "uq_restock_product", "product_id",
            unique=True,
            postgresql_where=text("variant_id IS NULL"),
            sqlite_where=text("variant_id IS NULL"),
        ),
        Index("ix_restock_expected_date", "expected_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=True
    )

    expected_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    actual_date: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=True,
        comment="When stock actually arrived or the date was cleared"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    def __repr__(self) -> str:
        return f"<RestockSchedule(product_id='{self.product_id}', variant_id='{self.variant_id}', expected={self.expected_date})>"


class RestockHistory(Base):
    """Append-only log of restock schedule changes."""
    __tablename__ = "restock_history"
    __table_args__ = (
        Index("ix_restock_history_item_created", "product_id", "variant_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
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

    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="SET, CLEARED, EXPIRED, RESTOCKED"
    )
    expected_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    previous_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<RestockHistory(action='{self.action}', expected={self.expected_date})>"
