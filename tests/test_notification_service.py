import uuid
from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select

from attireburg.core.security import verify_unsubscribe_token
from attireburg.models.notifications import NotificationLog
from attireburg.models.waitlist import WaitlistSubscription
from attireburg.services.notification_service import (
    DelayNotificationData,
    NotificationService,
    RestockNotificationData,
    build_unsubscribe_url,
    format_price,
)
from attireburg.services.waitlist_service import WaitlistService


def delay_data(**overrides):
    data = dict(
        email="alice@x.com",
        product_name="Wollpullover Classic",
        order_number="ATB-1A2B3C",
        original_date=datetime(2026, 3, 15, tzinfo=timezone.utc),
        cancellation_url="https://attireburg.test/account/backorders?cancel=abc",
    )
    data.update(overrides)
    return DelayNotificationData(**data)


def restock_data(product, **overrides):
    data = dict(
        email="alice@x.com",
        product_name=product.name,
        product_id=product.id,
        purchase_url=f"https://attireburg.test/products/{product.id}",
        current_price=Decimal("49.99"),
    )
    data.update(overrides)
    return RestockNotificationData(**data)


@pytest.mark.parametrize("amount, expected", [
    (Decimal("49.99"), "49,99 €"),
    (Decimal("1234.5"), "1.234,50 €"),
    (None, ""),
])
def test_format_price(amount, expected):
    assert format_price(amount) == expected


@pytest.mark.parametrize("new_date", [None, datetime(2026, 4, 20, tzinfo=timezone.utc)])
def test_delay_template_is_complete(db, new_date):
    data = delay_data(new_date=new_date)
    template = NotificationService(db).generate_delay_template(data)

    for content in (template.html_content, template.text_content):
        assert data.order_number in content
        assert data.product_name in content
        assert "15. März 2026" in content
        assert data.cancellation_url in content
    assert f'href="{data.cancellation_url}"' in template.html_content
    assert data.order_number in template.subject
    assert template.type == "delay"

    if new_date:
        assert "20. April 2026" in template.html_content
        assert "20. April 2026" in template.text_content


def test_restock_template(db, product):
    template = NotificationService(db).generate_restock_template(
        restock_data(product, variant_sku="PULLI-M-NAVY"),
        unsubscribe_url="https://attireburg.test/unsubscribe",
    )

    assert template.subject == f"{product.name} ist wieder verfügbar! | Attireburg"
    assert "49,99 €" in template.html_content
    assert "PULLI-M-NAVY" in template.html_content
    assert "https://attireburg.test/unsubscribe" in template.html_content
    assert "https://attireburg.test/unsubscribe" in template.text_content


def test_unsubscribe_url_carries_valid_token(product, variant):
    url = build_unsubscribe_url("alice@x.com", product.id, variant.id)

    parsed = urlparse(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    assert parsed.path == "/api/waitlist/unsubscribe"
    assert params["email"] == "alice@x.com"
    assert verify_unsubscribe_token(params["token"], "alice@x.com", params["productId"], params["variantId"])
    assert not verify_unsubscribe_token(params["token"], "mallory@x.com", params["productId"], params["variantId"])
    assert not verify_unsubscribe_token(params["token"], "alice@x.com", params["productId"], None)


async def test_send_logs_notification_with_tracking_pixel(db, outbox, product):
    service = NotificationService(db)

    result = await service.send_restock_notification(restock_data(product))

    assert result["success"] is True
    assert result["message"] == "Restock notification sent successfully"
    log = await db.get(NotificationLog, result["notification_id"])
    assert log.notification_type == "restock"
    assert log.email == "alice@x.com"
    assert log.email_opened is False

    sent = outbox.messages[0]
    assert f"notificationId={result['notification_id']}&action=open" in sent.html
    assert "token=" in sent.text


async def test_failed_send_writes_no_log(db, outbox, product):
    outbox.fail = True
    service = NotificationService(db)

    result = await service.send_restock_notification(restock_data(product))

    assert result == {"success": False, "message": "Failed to send restock notification"}
    assert (await db.execute(select(NotificationLog))).scalars().all() == []


async def test_consolidated_notifications(db, outbox, product, make_product):
    service = NotificationService(db)
    scarf = await make_product(name="Kaschmirschal", price="89.00")

    assert await service.send_consolidated_notifications("alice@x.com", []) == {
        "success": True,
        "message": "No notifications to send",
    }

    single = await service.send_consolidated_notifications("alice@x.com", [restock_data(product)])
    assert single["message"] == "Restock notification sent successfully"

    both = await service.send_consolidated_notifications(
        "alice@x.com",
        [restock_data(product), restock_data(scarf, product_name=scarf.name, current_price=Decimal("89.00"))],
    )
    assert both["message"] == "Consolidated notification sent successfully"
    assert outbox.messages[-1].subject.startswith("2 Artikel auf Ihrer Warteliste")
    assert "Kaschmirschal" in outbox.messages[-1].html
    assert "89,00 €" in outbox.messages[-1].html


async def test_restock_fanout_groups_by_email(db, outbox, product, variant, other_variant):
    waitlist = WaitlistService(db)
    await waitlist.subscribe("alice@x.com", product.id, variant.id)
    await waitlist.subscribe("alice@x.com", product.id, other_variant.id)
    await waitlist.subscribe("bob@x.com", product.id, variant.id)

    result = await NotificationService(db).send_restock_notifications_for_product(product.id)

    assert result["success"] is True
    assert result["message"] == "Sent 2 of 2 notifications"
    assert result["notifications_sent"] == 2
    assert result["subscriptions_notified"] == 3
    assert result["total_subscriptions"] == 3
    assert len(outbox.to("alice@x.com")) == 1
    assert len(outbox.to("bob@x.com")) == 1

    subscriptions = (await db.execute(
        select(WaitlistSubscription).execution_options(populate_existing=True)
    )).scalars().all()
    assert all(s.notified_at is not None for s in subscriptions)


async def test_restock_fanout_for_one_variant(db, outbox, product, variant, other_variant):
    waitlist = WaitlistService(db)
    await waitlist.subscribe("alice@x.com", product.id, variant.id)
    await waitlist.subscribe("bob@x.com", product.id, other_variant.id)

    result = await NotificationService(db).send_restock_notifications_for_product(product.id, variant.id)

    assert result["notifications_sent"] == 1
    assert [m.to for m in outbox.messages] == ["alice@x.com"]


async def test_restock_fanout_without_subscribers(db, outbox, product):
    result = await NotificationService(db).send_restock_notifications_for_product(product.id)
    assert result["message"] == "Sent 0 of 0 notifications"
    assert outbox.messages == []


async def test_test_notification(db, outbox):
    result = await NotificationService(db).send_test_notification("ops@attireburg.de")

    assert result["success"] is True
    assert outbox.messages[0].subject.startswith("[Test]")
    log = await db.get(NotificationLog, result["notification_id"])
    assert log.notification_type == "test"


async def test_tracking_and_analytics(db, outbox, product):
    service = NotificationService(db)
    ids = [
        (await service.send_restock_notification(restock_data(product, email=f"kunde{i}@x.com")))["notification_id"]
        for i in range(4)
    ]
    await service.send_delay_notification(delay_data())

    assert await service.track_email_open(ids[0]) is True
    assert await service.track_email_open(str(ids[1])) is True
    assert await service.track_email_open(ids[1]) is True
    assert await service.track_link_click(ids[0]) is True
    assert await service.track_purchase_complete(ids[0]) is True

    assert await service.track_email_open(uuid.uuid4()) is False
    assert await service.track_link_click("not-a-uuid") is False

    analytics = await service.get_analytics()
    assert analytics["total_sent"] == 5
    assert analytics["open_rate"] == 40.0
    assert analytics["click_rate"] == 20.0
    assert analytics["conversion_rate"] == 20.0
    assert analytics["by_type"] == {"restock": 4, "delay": 1}


async def test_analytics_empty(db):
    analytics = await NotificationService(db).get_analytics()
    assert analytics["total_sent"] == 0
    assert analytics["open_rate"] == 0
