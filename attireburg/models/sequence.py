"""
Persistent counters for values that must be unique and strictly increasing
across concurrent requests, e.g. backorder FIFO priorities.

The row is locked with SELECT ... FOR UPDATE while it is incremented, so
two transactions can never hand out the same value.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from attireburg.database import Base
from attireburg.db_types import UUIDType, UTCDateTime


BACKORDER_PRIORITY_SEQUENCE = "backorder_priority"


class NumberSequence(Base):
    """Named counter. current_value is the last value handed out."""
    __tablename__ = "sequences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        comment="e.g. backorder_priority"
    )
    current_value: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used value"
    )

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

    def next_value(self) -> int:
        """Increment and return the next value. Caller must hold the row lock."""
        self.current_value += 1
        return self.current_value

    def __repr__(self) -> str:
        return f"<NumberSequence(name='{self.name}', current={self.current_value})>"
