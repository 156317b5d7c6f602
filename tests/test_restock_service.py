from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from attireburg.models.order import Order, OrderItem, OrderType, OrderStatus
from attireburg.models.restock import RestockHistory, RestockAction, RestockSchedule
from attireburg.services.restock_service import RestockService


def in_days(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.mark.parametrize("offset", [timedelta(seconds=-1), timedelta(days=-30), timedelta(0)])
async def test_set_restock_date_rejects_past_and_present(db, product, offset):
    service = RestockService(db)
    result = await service.set_restock_date(product.id, expected_date=datetime.now(timezone.utc) + offset)

    assert result["success"] is False
    assert "future" in result["message"]
    assert await service.get_restock_date(product.id) is None


@pytest.mark.parametrize("days", [1, 14, 365])
async def test_set_restock_date_accepts_future(db, product, days):
    service = RestockService(db)
    expected = in_days(days)

    result = await service.set_restock_date(product.id, expected_date=expected, notes="Lieferung aus Italien")

    assert result == {"success": True, "message": "Restock date updated successfully"}
    stored = await service.get_restock_date(product.id)
    assert stored["expected_date"] == expected
    assert stored["notes"] == "Lieferung aus Italien"


async def test_naive_dates_are_treated_as_utc(db, product):
    service = RestockService(db)
    naive = (datetime.now(timezone.utc) + timedelta(days=3)).replace(tzinfo=None, microsecond=0)

    assert (await service.set_restock_date(product.id, expected_date=naive))["success"]

    stored = await service.get_restock_date(product.id)
    assert stored["expected_date"] == naive.replace(tzinfo=timezone.utc)


async def test_set_restock_date_unknown_items(db, product):
    service = RestockService(db)

    missing_product = await service.set_restock_date(uuid.uuid4(), expected_date=in_days(5))
    assert missing_product == {"success": False, "message": "Product not found"}

    missing_variant = await service.set_restock_date(product.id, uuid.uuid4(), expected_date=in_days(5))
    assert missing_variant == {"success": False, "message": "Product variant not found"}


async def test_variants_are_independent(db, product, variant, other_variant):
    service = RestockService(db)
    date_a = in_days(10)
    date_b = in_days(20)

    await service.set_restock_date(product.id, variant.id, date_a)
    await service.set_restock_date(product.id, other_variant.id, date_b)

    await service.set_restock_date(product.id, variant.id, in_days(30))
    assert (await service.get_restock_date(product.id, other_variant.id))["expected_date"] == date_b

    await service.clear_restock_date(product.id, variant.id)
    assert (await service.get_restock_date(product.id, other_variant.id))["expected_date"] == date_b
    assert (await service.get_restock_date(product.id, variant.id))["expected_date"] is None

    # product-level schedule is separate from both variants
    assert await service.get_restock_date(product.id) is None


async def test_database_rejects_duplicate_schedules(db, product, variant):
    product_id, variant_id = product.id, variant.id

    for target in (None, variant_id):
        db.add_all([
            RestockSchedule(product_id=product_id, variant_id=target),
            RestockSchedule(product_id=product_id, variant_id=target),
        ])
        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()


async def test_concurrent_schedule_insert_is_reported(db, product, monkeypatch):
    product_id = product.id
    service = RestockService(db)
    await service.set_restock_date(product_id, expected_date=in_days(5))
    await db.commit()

    get_schedule = service._get_schedule

    async def schedule_before_commit(*args, **kwargs):
        if kwargs.get("lock"):
            return None
        return await get_schedule(*args, **kwargs)

    monkeypatch.setattr(service, "_get_schedule", schedule_before_commit)
    result = await service.set_restock_date(product_id, expected_date=in_days(9))

    assert result == {"success": False, "message": "Restock date was changed concurrently, please retry"}
    assert await db.scalar(select(func.count(RestockSchedule.id))) == 1


async def test_set_without_date_records_cleared(db, product):
    service = RestockService(db)
    await service.set_restock_date(product.id, expected_date=in_days(7))

    result = await service.set_restock_date(product.id, expected_date=None)

    assert result["success"]
    history = await service.get_restock_history(product.id)
    assert [h["action"] for h in history] == [RestockAction.CLEARED.value, RestockAction.SET.value]
    assert history[0]["previous_date"] is not None


async def test_clear_restock_date(db, product):
    service = RestockService(db)

    assert (await service.clear_restock_date(product.id))["success"] is False

    await service.set_restock_date(product.id, expected_date=in_days(7))
    result = await service.clear_restock_date(product.id)

    assert result == {"success": True, "message": "Restock date cleared successfully"}
    schedule = await service.get_restock_date(product.id)
    assert schedule["expected_date"] is None
    assert schedule["actual_date"] is not None


async def test_history_is_newest_first(db, product):
    service = RestockService(db)
    first = in_days(5)
    second = in_days(9)

    await service.set_restock_date(product.id, expected_date=first)
    await service.set_restock_date(product.id, expected_date=second)

    history = await service.get_restock_history(product.id)
    assert len(history) == 2
    assert history[0]["expected_date"] == second
    assert history[0]["previous_date"] == first
    assert history[1]["previous_date"] is None


async def test_bulk_update_reports_partial_failures(db, product, variant, other_variant):
    service = RestockService(db)

    result = await service.bulk_update_restock_dates([
        {"product_id": product.id, "variant_id": variant.id, "expected_date": in_days(3)},
        {"product_id": product.id, "variant_id": other_variant.id, "expected_date": in_days(-3)},
        {"product_id": product.id, "expected_date": in_days(4)},
    ])

    assert result["success"] is True
    assert result["updated_count"] == 2
    assert result["message"] == "Updated 2 of 3 restock dates"
    assert result["errors"] == ["Update 2: Expected restock date must be in the future"]
    assert await service.get_restock_date(product.id, other_variant.id) is None


async def test_bulk_update_all_failed(db, product):
    service = RestockService(db)

    result = await service.bulk_update_restock_dates([
        {"product_id": product.id, "expected_date": in_days(-1)},
    ])

    assert result["success"] is False
    assert result["updated_count"] == 0


async def test_upcoming_restocks_sorted_with_counts(db, product, variant, other_variant):
    service = RestockService(db)
    await service.set_restock_date(product.id, other_variant.id, in_days(20))
    await service.set_restock_date(product.id, variant.id, in_days(5))

    upcoming = await service.get_upcoming_restocks()

    assert [u["variant_sku"] for u in upcoming] == ["PULLI-M-NAVY", "PULLI-L-NAVY"]
    assert upcoming[0]["product_name"] == product.name
    assert upcoming[0]["waitlist_count"] == 0
    assert upcoming[0]["backorder_count"] == 0

    assert len(await service.get_upcoming_restocks(limit=1)) == 1


async def test_mark_restocked_closes_schedule(db, product, variant):
    service = RestockService(db)
    assert await service.mark_restocked(product.id, variant.id) is False

    await service.set_restock_date(product.id, variant.id, in_days(5))
    assert await service.mark_restocked(product.id, variant.id) is True

    schedule = await service.get_restock_date(product.id, variant.id)
    assert schedule["expected_date"] is None
    assert schedule["actual_date"] is not None
    history = await service.get_restock_history(product.id, variant.id)
    assert history[0]["action"] == RestockAction.RESTOCKED.value


async def test_process_expired_dates_notifies_pending_backorders(db, outbox, customer, product, variant):
    service = RestockService(db)
    past = datetime.now(timezone.utc) - timedelta(days=2)

    # expired dates cannot be set through the service, so write the schedule directly
    db.add(RestockSchedule(product_id=product.id, variant_id=variant.id, expected_date=past))
    order = Order(
        user_id=customer.id,
        order_type=OrderType.BACKORDER.value,
        status=OrderStatus.PENDING.value,
        total_amount=Decimal("49.99"),
        shipping_address="Hauptstraße 1",
        shipping_city="Berlin",
        shipping_postal="10115",
        backorder_priority=1,
    )
    order.items = [OrderItem(product_id=product.id, variant_id=variant.id, quantity=1, size="M", price=Decimal("49.99"))]
    db.add(order)
    await db.flush()

    result = await service.process_expired_restock_dates()

    assert result == {"processed_count": 1, "notifications_sent": 1}
    schedule = await service.get_restock_date(product.id, variant.id)
    assert schedule["expected_date"] is None
    assert schedule["notes"] == f"Previous expected date {past.strftime('%Y-%m-%d')} has passed"

    history = (await db.execute(select(RestockHistory))).scalars().all()
    assert [h.action for h in history] == [RestockAction.EXPIRED.value]

    mail = outbox.to(customer.email)
    assert len(mail) == 1
    assert order.order_number in mail[0].subject
    assert f"/account/backorders?cancel={order.id}" in mail[0].html


async def test_process_expired_dates_nothing_to_do(db, product):
    service = RestockService(db)
    await service.set_restock_date(product.id, expected_date=in_days(5))

    assert await service.process_expired_restock_dates() == {"processed_count": 0, "notifications_sent": 0}
