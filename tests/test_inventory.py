import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from attireburg.models.product import Product, ProductVariant
from attireburg.services.backorder_service import BackorderService
from attireburg.services.inventory_monitor import InventoryMonitor
from attireburg.services.inventory_service import InventoryItem, InventoryService
from attireburg.services.order_state_machine import OrderStatus
from attireburg.services.restock_service import RestockService
from attireburg.services.waitlist_service import WaitlistService


async def backorder(db, user, product, variant, quantity):
    result = await BackorderService(db).create_backorder(
        user_id=user.id,
        items=[{
            "product_id": product.id,
            "variant_id": variant.id,
            "quantity": quantity,
            "size": variant.size,
            "price": Decimal("49.99"),
        }],
        total_amount=Decimal("49.99") * quantity,
        shipping_address="Hauptstraße 1",
        shipping_city="Berlin",
        shipping_postal="10115",
    )
    assert result["success"], result["message"]
    return result["order_id"]


class TestInventoryService:

    async def test_check_stock(self, db, product, variant, other_variant):
        info = await InventoryService(db).check_stock([
            InventoryItem(product.id, 1, variant.id),
            InventoryItem(product.id, 5, other_variant.id),
            InventoryItem(uuid.uuid4(), 1),
        ])

        assert [i.available for i in info] == [False, True, False]
        assert info[1].current_stock == 5
        assert info[1].name == "variant PULLI-L-NAVY"
        assert info[2].current_stock == 0

    async def test_reserve_is_all_or_nothing(self, db, product, variant, other_variant, fresh):
        service = InventoryService(db)

        result = await service.reserve_inventory([
            InventoryItem(product.id, 2, other_variant.id),
            InventoryItem(product.id, 1, variant.id),
            InventoryItem(product.id, 1, uuid.uuid4()),
        ])
        await db.commit()

        assert result.success is False
        assert len(result.errors) == 2
        assert any("Insufficient stock for variant PULLI-M-NAVY: requested 1, available 0" == e for e in result.errors)
        assert any(e.endswith("not found") for e in result.errors)
        assert (await fresh(ProductVariant, other_variant.id)).stock == 5

    async def test_reserve_sums_repeated_lines(self, db, product, other_variant, fresh):
        service = InventoryService(db)

        too_much = await service.reserve_inventory([
            InventoryItem(product.id, 3, other_variant.id),
            InventoryItem(product.id, 3, other_variant.id),
        ])
        assert too_much.success is False
        assert "requested 6, available 5" in too_much.errors[0]

        ok = await service.reserve_inventory([
            InventoryItem(product.id, 2, other_variant.id),
            InventoryItem(product.id, 3, other_variant.id),
        ])
        await db.commit()
        assert ok.success is True
        assert (await fresh(ProductVariant, other_variant.id)).stock == 0

    async def test_reserve_rejects_non_positive_quantity(self, db, product, other_variant):
        result = await InventoryService(db).reserve_inventory([InventoryItem(product.id, 0, other_variant.id)])
        assert result.errors == ["Invalid quantity 0"]

    async def test_restore(self, db, make_product, fresh):
        plain = await make_product(name="Leinenhemd", stock=1)
        service = InventoryService(db)

        result = await service.restore_inventory([
            InventoryItem(plain.id, 4),
            InventoryItem(uuid.uuid4(), 1),
        ])
        await db.commit()

        assert result.success is False
        assert len(result.errors) == 1
        assert (await fresh(Product, plain.id)).stock == 5

    async def test_update_stock(self, db, product, variant):
        service = InventoryService(db)

        assert await service.update_stock(product.id, 7, variant.id) == 0
        assert await service.get_stock(product.id, variant.id) == 7

        with pytest.raises(ValueError, match="Stock cannot be negative"):
            await service.update_stock(product.id, -1, variant.id)
        with pytest.raises(ValueError, match="Product variant not found"):
            await service.update_stock(product.id, 1, uuid.uuid4())
        with pytest.raises(ValueError, match="Product not found"):
            await service.update_stock(uuid.uuid4(), 1)

    async def test_product_stock(self, db, product, variant, other_variant):
        stock = await InventoryService(db).get_product_stock(product.id)

        assert stock["total_stock"] == 5
        assert [v["sku"] for v in stock["variants"]] == ["PULLI-L-NAVY", "PULLI-M-NAVY"]
        assert await InventoryService(db).get_product_stock(uuid.uuid4()) is None

    async def test_low_stock_alerts(self, db, product, variant, other_variant, make_product):
        await make_product(name="Gut gefüllt", stock=50)

        alerts = await InventoryService(db).get_low_stock_alerts(threshold=2)

        assert [v["sku"] for v in alerts["variants"]] == ["PULLI-M-NAVY"]
        assert [p["name"] for p in alerts["products"]] == [product.name]


class TestInventoryMonitor:

    async def test_restock_event(self, db, outbox, customer, make_user, product, variant):
        second = await make_user(email="zweite@example.com", name="Erika Musterfrau")
        first_order = await backorder(db, customer, product, variant, 2)
        second_order = await backorder(db, second, product, variant, 2)
        await WaitlistService(db).subscribe("warteliste@example.com", product.id, variant.id)
        await RestockService(db).set_restock_date(
            product.id, variant.id, datetime.now(timezone.utc) + timedelta(days=10)
        )

        result = await InventoryMonitor(db).trigger_restock_processing(product.id, variant.id, new_stock=3)

        assert result["success"] is True
        assert result["backorders_fulfilled"] == 1
        assert result["notifications_sent"] == 2
        assert result["message"] == "Processed inventory update: 1 backorders fulfilled, 2 notifications sent"

        backorders = BackorderService(db)
        assert (await backorders.get_backorder_status(first_order))["status"] == OrderStatus.PROCESSING
        assert (await backorders.get_backorder_status(second_order))["status"] == OrderStatus.PENDING

        assert len(outbox.to(customer.email)) == 1
        assert "wird bearbeitet" in outbox.to(customer.email)[0].subject
        assert outbox.to(second.email) == []
        assert len(outbox.to("warteliste@example.com")) == 1

        schedule = await RestockService(db).get_restock_date(product.id, variant.id)
        assert schedule["expected_date"] is None
        assert schedule["actual_date"] is not None
        # two of the three units went to the first backorder
        assert await InventoryService(db).get_stock(product.id, variant.id) == 1

    async def test_restocked_units_are_allocated_once(self, db, outbox, customer, make_user, product, variant):
        first_order = await backorder(db, customer, product, variant, 2)
        second_order = await backorder(db, await make_user(email="zweite@example.com"), product, variant, 2)
        monitor = InventoryMonitor(db)

        restocked = await monitor.trigger_restock_processing(product.id, variant.id, new_stock=2)
        again = await monitor.trigger_restock_processing(product.id, variant.id)
        checkout = await InventoryService(db).reserve_inventory([InventoryItem(product.id, 2, variant.id)])

        assert restocked["backorders_fulfilled"] == 1
        assert again["backorders_fulfilled"] == 0
        assert checkout.success is False
        backorders = BackorderService(db)
        assert (await backorders.get_backorder_status(first_order))["status"] == OrderStatus.PROCESSING
        assert (await backorders.get_backorder_status(second_order))["status"] == OrderStatus.PENDING
        assert await InventoryService(db).get_stock(product.id, variant.id) == 0

    async def test_consolidated_email_counts_every_item(self, db, outbox, make_product, make_variant):
        shirt = await make_product(name="Leinenhemd")
        shirt_m = await make_variant(shirt, "HEMD-M")
        waitlist = WaitlistService(db)
        await waitlist.subscribe("alice@x.com", shirt.id)
        await waitlist.subscribe("alice@x.com", shirt.id, shirt_m.id)

        result = await InventoryMonitor(db).trigger_restock_processing(shirt.id, new_stock=3)

        assert len(outbox.to("alice@x.com")) == 1
        assert result["notifications_sent"] == 2
        assert result["message"] == "Processed inventory update: 0 backorders fulfilled, 2 notifications sent"

    async def test_stock_decrease_does_nothing(self, db, outbox, product, other_variant):
        await WaitlistService(db).subscribe("warteliste@example.com", product.id, other_variant.id)

        result = await InventoryMonitor(db).process_inventory_update(product.id, other_variant.id, 5, 2)

        assert result["backorders_fulfilled"] == 0
        assert result["notifications_sent"] == 0
        assert outbox.messages == []

    async def test_current_stock_treated_as_arrival(self, db, outbox, customer, product, variant, other_variant):
        await WaitlistService(db).subscribe("warteliste@example.com", product.id, other_variant.id)

        result = await InventoryMonitor(db).trigger_restock_processing(product.id, other_variant.id)

        assert result["notifications_sent"] == 1

    async def test_unknown_item(self, db, product):
        monitor = InventoryMonitor(db)
        with pytest.raises(ValueError, match="Product not found"):
            await monitor.trigger_restock_processing(uuid.uuid4())
        with pytest.raises(ValueError, match="Product variant not found"):
            await monitor.trigger_restock_processing(product.id, uuid.uuid4(), new_stock=4)

    async def test_monitoring_stats(self, db, customer, product, variant, other_variant):
        await backorder(db, customer, product, variant, 1)
        await WaitlistService(db).subscribe("a@example.com", product.id, variant.id)
        await WaitlistService(db).subscribe("b@example.com", product.id, variant.id)
        await WaitlistService(db).unsubscribe("b@example.com", product.id, variant.id)

        stats = await InventoryMonitor(db).get_monitoring_stats()

        assert stats["total_backorders"] == 1
        assert stats["pending_backorders"] == 1
        assert stats["total_waitlist_subscriptions"] == 2
        assert stats["active_waitlist_subscriptions"] == 1
        assert stats["out_of_stock_products"] == 1
        assert stats["out_of_stock_variants"] == 1
