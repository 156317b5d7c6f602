"""Database models for customer email notifications."""
from datetime import datetime, timezone
from uuid import uuid4
from enum import Enum

from sqlalchemy import Column, String, Boolean, ForeignKey, Index

from attireburg.database import Base
from attireburg.db_types import UUIDType, UTCDateTime


class NotificationKind(str, Enum):
    """Types of customer notification emails."""
    RESTOCK = "restock"
    DELAY = "delay"
    FULFILLMENT = "fulfillment"
    TEST = "test"


class NotificationLog(Base):
    """
    One row per dispatched email.

    Rows are written by the sender only; the engagement flags are flipped
    later by the tracking endpoints.
    """
    __tablename__ = "notification_logs"

    id = Column(UUIDType, primary_key=True, default=uuid4)

    notification_type = Column(String(20), nullable=False, index=True, comment="restock, delay, fulfillment, test")
    email = Column(String(255), nullable=False, index=True)
    subject = Column(String(300), nullable=False)

    product_name = Column(String(255))
    variant_sku = Column(String(50))

    # Reference to related entity
    order_id = Column(UUIDType, ForeignKey("orders.id", ondelete="SET NULL"))
    subscription_id = Column(UUIDType, ForeignKey("waitlist_subscriptions.id", ondelete="SET NULL"))

    sent_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    # Engagement
    email_opened = Column(Boolean, default=False, nullable=False)
    opened_at = Column(UTCDateTime)
    link_clicked = Column(Boolean, default=False, nullable=False)
    clicked_at = Column(UTCDateTime)
    purchase_completed = Column(Boolean, default=False, nullable=False)
    purchased_at = Column(UTCDateTime)

    __table_args__ = (
        Index('ix_notification_logs_type_sent', 'notification_type', 'sent_at'),
    )

    def __repr__(self) -> str:
        return f"<NotificationLog(type='{self.notification_type}', email='{self.email}')>"
