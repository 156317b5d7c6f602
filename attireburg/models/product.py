import uuid
from datetime import datetime, timezone
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, ForeignKey, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attireburg.database import Base
from attireburg.db_types import UUIDType, JSONType, UTCDateTime


class Product(Base):
    """
    Catalog product.
    Stock is tracked here for products without variants; variant stock lives
    on ProductVariant.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic Info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)

    # Inventory
    stock: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Product-level stock, used when the order item has no variant"
    )

    # e.g. ["winter", "wool"]
    tags: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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
    variants: Mapped[List["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', stock={self.stock})>"


class ProductVariant(Base):
    """
    Size/colour variant of a product with its own stock.
    """
    __tablename__ = "product_variants"

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

    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Free-form attributes, e.g. {"Size": "M", "Color": "Navy", "Fit": "Slim"}
    attributes: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Pricing (overrides parent product when set)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Inventory
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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
    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    @property
    def display_size(self) -> Optional[str]:
        """Size column, falling back to the Size attribute."""
        if self.size:
            return self.size
        return (self.attributes or {}).get("Size")

    @property
    def display_color(self) -> Optional[str]:
        """Colour column, falling back to the Color attribute."""
        if self.color:
            return self.color
        return (self.attributes or {}).get("Color")

    def __repr__(self) -> str:
        return f"<ProductVariant(sku='{self.sku}', stock={self.stock})>"
