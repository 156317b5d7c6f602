import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attireburg.database import Base
from attireburg.db_types import UUIDType, UTCDateTime

if TYPE_CHECKING:
    from attireburg.models.product import Product, ProductVariant
    from attireburg.models.user import User


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "PENDING"          # Placed, awaiting confirmation (backorders wait here)
    CONFIRMED = "CONFIRMED"      # Payment confirmed
    PROCESSING = "PROCESSING"    # Being picked/packed (fulfilled backorders land here)
    SHIPPED = "SHIPPED"          # Handed to carrier
    DELIVERED = "DELIVERED"      # Delivered to customer
    CANCELLED = "CANCELLED"      # Cancelled, stock restored
    REFUNDED = "REFUNDED"        # Refund processed


class OrderType(str, Enum):
    """Regular checkout order or backorder for out-of-stock items."""
    REGULAR = "regular"
    BACKORDER = "backorder"


def format_order_number(order_id: uuid.UUID, length: int = 6, prefix: str = "ATB-") -> str:
    """Human-facing order number derived from the order id."""
    return f"{prefix}{order_id.hex[-length:].upper()}"


class Order(Base):
    """
    Order model.
    Backorders are orders with order_type='backorder' and a FIFO priority.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_type_status_priority', 'order_type', 'status', 'backorder_priority'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    order_type: Mapped[str] = mapped_column(
        String(20),
        default=OrderType.REGULAR.value,
        nullable=False,
        comment="regular, backorder"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED"
    )

    # Pricing
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)

    # Shipping
    shipping_address: Mapped[str] = mapped_column(String(500), nullable=False)
    shipping_city: Mapped[str] = mapped_column(String(100), nullable=False)
    shipping_postal: Mapped[str] = mapped_column(String(20), nullable=False)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Payment
    payment_method: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        comment="PAYPAL, GOOGLE_PAY, COD"
    )
    paypal_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    paypal_payer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Backorder
    backorder_priority: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="FIFO position; lower is served first"
    )
    expected_fulfillment_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Audit timestamps set by the state machine
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

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
    user: Mapped["User"] = relationship("User")
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan"
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at"
    )

    @property
    def order_number(self) -> str:
        return format_order_number(self.id)

    @property
    def is_backorder(self) -> bool:
        return self.order_type == OrderType.BACKORDER.value

    def __repr__(self) -> str:
        return f"<Order(id='{self.id}', type='{self.order_type}', status='{self.status}')>"


class OrderItem(Base):
    """Order line item. Price is frozen at order time."""
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    size: Mapped[str] = mapped_column(String(20), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")
    variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")

    def __repr__(self) -> str:
        return f"<OrderItem(product_id='{self.product_id}', quantity={self.quantity})>"


class OrderStatusHistory(Base):
    """Order status change history."""
    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    from_status: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )
    to_status: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory(from='{self.from_status}', to='{self.to_status}')>"
