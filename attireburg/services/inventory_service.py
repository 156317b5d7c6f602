"""Inventory Service for stock checks, reservation and restoration."""
from typing import Optional, List, Dict, Tuple, Iterable, Union
from dataclasses import dataclass, field
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attireburg.models.product import Product, ProductVariant


logger = logging.getLogger(__name__)

StockRow = Union[Product, ProductVariant]


@dataclass
class InventoryItem:
    """A quantity of one product, or one variant of it."""
    product_id: uuid.UUID
    quantity: int
    variant_id: Optional[uuid.UUID] = None

    @property
    def key(self) -> Tuple[uuid.UUID, Optional[uuid.UUID]]:
        return (self.product_id, self.variant_id)


@dataclass
class StockInfo:
    """Availability of one requested item."""
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    requested: int
    current_stock: int
    available: bool
    name: Optional[str] = None


@dataclass
class InventoryResult:
    """Result of a reserve/restore call."""
    success: bool
    errors: List[str] = field(default_factory=list)


def items_from_order(order) -> List[InventoryItem]:
    """Inventory items for every line of an order."""
    return [
        InventoryItem(
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
        )
        for item in order.items
    ]


class InventoryService:
    """Service for inventory ledger operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== LOOKUPS ====================

    async def _get_stock_row(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
        lock: bool = False,
    ) -> Optional[StockRow]:
        """
        Row that holds the stock for an item: the variant when variant_id is
        given, otherwise the product.
        """
        if variant_id:
            query = select(ProductVariant).where(
                ProductVariant.id == variant_id,
                ProductVariant.product_id == product_id,
            )
        else:
            query = select(Product).where(Product.id == product_id)

        if lock:
            # pending changes go out first so the refreshed row includes them
            await self.db.flush()
            query = query.with_for_update().execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _describe(item: InventoryItem, row: Optional[StockRow]) -> str:
        if isinstance(row, ProductVariant):
            return f"variant {row.sku}"
        if isinstance(row, Product):
            return row.name
        if item.variant_id:
            return f"variant {item.variant_id}"
        return f"product {item.product_id}"

    # ==================== CHECK ====================

    async def check_stock(self, items: Iterable[InventoryItem]) -> List[StockInfo]:
        """Availability per item. Unknown items are reported unavailable with stock 0."""
        stock_info = []
        for item in items:
            row = await self._get_stock_row(item.product_id, item.variant_id)
            current = row.stock if row else 0
            stock_info.append(StockInfo(
                product_id=item.product_id,
                variant_id=item.variant_id,
                requested=item.quantity,
                current_stock=current,
                available=row is not None and current >= item.quantity,
                name=self._describe(item, row),
            ))
        return stock_info

    # ==================== RESERVE / RESTORE ====================

    async def reserve_inventory(self, items: Iterable[InventoryItem]) -> InventoryResult:
        """
        Decrement stock for all items of one order, or for none of them.

        Rows are locked (SELECT ... FOR UPDATE) and every item is checked
        before anything is decremented. Repeated lines for the same item are
        summed before the check.
        """
        requested: Dict[Tuple[uuid.UUID, Optional[uuid.UUID]], InventoryItem] = {}
        for item in items:
            if item.quantity <= 0:
                return InventoryResult(success=False, errors=[f"Invalid quantity {item.quantity}"])
            if item.key in requested:
                requested[item.key].quantity += item.quantity
            else:
                requested[item.key] = InventoryItem(item.product_id, item.quantity, item.variant_id)

        # Lock in a stable order so concurrent checkouts cannot deadlock
        ordered = sorted(requested.values(), key=lambda i: (str(i.product_id), str(i.variant_id or "")))

        rows: List[Tuple[InventoryItem, StockRow]] = []
        errors: List[str] = []
        for item in ordered:
            row = await self._get_stock_row(item.product_id, item.variant_id, lock=True)
            if row is None:
                errors.append(f"{self._describe(item, None).capitalize()} not found")
                continue
            if row.stock < item.quantity:
                errors.append(
                    f"Insufficient stock for {self._describe(item, row)}: "
                    f"requested {item.quantity}, available {row.stock}"
                )
                continue
            rows.append((item, row))

        if errors:
            logger.warning(f"Inventory reservation rejected: {'; '.join(errors)}")
            return InventoryResult(success=False, errors=errors)

        for item, row in rows:
            row.stock -= item.quantity

        await self.db.flush()
        logger.info(f"Reserved inventory for {len(rows)} item(s)")
        return InventoryResult(success=True)

    async def restore_inventory(self, items: Iterable[InventoryItem]) -> InventoryResult:
        """
        Put stock back, item by item.

        Variant-level when the item has a variant, product-level otherwise.
        A missing row is reported but does not stop the other items.
        """
        errors: List[str] = []
        restored = 0
        for item in items:
            row = await self._get_stock_row(item.product_id, item.variant_id, lock=True)
            if row is None:
                errors.append(f"Cannot restore stock: {self._describe(item, None)} not found")
                continue
            row.stock += item.quantity
            restored += 1

        await self.db.flush()

        if errors:
            logger.warning(f"Inventory restoration incomplete: {'; '.join(errors)}")
        else:
            logger.info(f"Restored inventory for {restored} item(s)")

        return InventoryResult(success=not errors, errors=errors)

    # ==================== ADMIN ====================

    async def update_stock(
        self,
        product_id: uuid.UUID,
        new_stock: int,
        variant_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Set the absolute stock of a product or variant.

        Returns:
            The stock before the update

        Raises:
            ValueError: If the item does not exist or new_stock is negative
        """
        if new_stock < 0:
            raise ValueError("Stock cannot be negative")

        row = await self._get_stock_row(product_id, variant_id, lock=True)
        if row is None:
            raise ValueError("Product variant not found" if variant_id else "Product not found")

        previous = row.stock
        row.stock = new_stock
        await self.db.flush()
        return previous

    async def get_stock(self, product_id: uuid.UUID, variant_id: Optional[uuid.UUID] = None) -> Optional[int]:
        row = await self._get_stock_row(product_id, variant_id)
        return row.stock if row else None

    async def get_product_stock(self, product_id: uuid.UUID) -> Optional[dict]:
        """Stock of a product and all its variants."""
        result = await self.db.execute(
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.id == product_id)
        )
        product = result.scalar_one_or_none()
        if not product:
            return None

        variants = [
            {
                "id": v.id,
                "sku": v.sku,
                "size": v.display_size,
                "color": v.display_color,
                "stock": v.stock,
            }
            for v in sorted(product.variants, key=lambda v: v.sku)
        ]
        total = sum(v["stock"] for v in variants) if variants else product.stock

        return {
            "product_id": product.id,
            "name": product.name,
            "product_stock": product.stock,
            "variants": variants,
            "total_stock": total,
        }

    async def get_low_stock_alerts(self, threshold: int = 5) -> dict:
        """Active products and variants at or below the threshold."""
        product_result = await self.db.execute(
            select(Product)
            .where(Product.is_active == True, Product.stock <= threshold)
            .order_by(Product.stock, Product.name)
        )
        variant_result = await self.db.execute(
            select(ProductVariant, Product.name)
            .join(Product, ProductVariant.product_id == Product.id)
            .where(ProductVariant.is_active == True, ProductVariant.stock <= threshold)
            .order_by(ProductVariant.stock, ProductVariant.sku)
        )

        products = [
            {"id": p.id, "name": p.name, "stock": p.stock}
            for p in product_result.scalars().all()
        ]
        variants = [
            {
                "id": v.id,
                "product_id": v.product_id,
                "product_name": name,
                "sku": v.sku,
                "size": v.display_size,
                "color": v.display_color,
                "stock": v.stock,
            }
            for v, name in variant_result.all()
        ]
        return {"products": products, "variants": variants}
