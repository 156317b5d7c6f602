import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

import pytest

from attireburg.core.security import create_unsubscribe_token
from attireburg.services.notification_service import build_unsubscribe_url


def future(days=14):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def backorder_body(user, product, variant, quantity=1):
    return {
        "userId": str(user.id),
        "items": [{
            "productId": str(product.id),
            "variantId": str(variant.id),
            "quantity": quantity,
            "size": variant.size,
            "price": "49.99",
        }],
        "totalAmount": str(49.99 * quantity),
        "shippingAddress": "Hauptstraße 1",
        "shippingCity": "Berlin",
        "shippingPostal": "10115",
    }


class TestAuth:

    @pytest.mark.parametrize("method, path", [
        ("GET", "/api/admin/backorders"),
        ("GET", "/api/admin/restock-dates"),
        ("GET", "/api/admin/production-check"),
        ("POST", "/api/notifications/test"),
        ("GET", "/api/inventory/status"),
    ])
    async def test_admin_routes_require_token(self, client, method, path):
        response = await client.request(method, path)
        assert response.status_code == 401

    async def test_admin_routes_reject_customers(self, client, customer_headers):
        response = await client.get("/api/admin/backorders", headers=customer_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    async def test_invalid_token(self, client):
        response = await client.get("/api/admin/backorders", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestBackorders:

    async def test_create_status_cancel(self, client, customer, product, variant):
        response = await client.post("/api/backorders/create", json=backorder_body(customer, product, variant, 2))
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        order_id = body["orderId"]

        response = await client.get("/api/backorders/status", params={"orderId": order_id})
        assert response.status_code == 200
        backorder = response.json()
        assert backorder["status"] == "PENDING"
        assert backorder["orderType"] == "backorder"
        assert backorder["items"][0]["variantSku"] == "PULLI-M-NAVY"

        response = await client.get("/api/backorders/status", params={"userId": str(customer.id)})
        assert response.json()["total"] == 1

        response = await client.put("/api/backorders/cancel", json={"orderId": order_id, "reason": "Zu lange"})
        assert response.status_code == 200
        assert response.json()["message"] == "Backorder cancelled successfully"

        response = await client.put("/api/backorders/cancel", json={"orderId": order_id})
        assert response.status_code == 400

    async def test_in_stock_rejected(self, client, customer, product, other_variant):
        response = await client.post("/api/backorders/create", json=backorder_body(customer, product, other_variant))
        assert response.status_code == 400
        assert "is in stock" in response.json()["error"]

    async def test_validation_error(self, client, customer, product, variant):
        body = backorder_body(customer, product, variant)
        body["items"] = []
        response = await client.post("/api/backorders/create", json=body)
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"

    async def test_status_lookups(self, client):
        response = await client.get("/api/backorders/status")
        assert response.status_code == 400
        assert response.json() == {"error": "orderId or userId is required"}

        response = await client.get("/api/backorders/status", params={"orderId": str(uuid.uuid4())})
        assert response.status_code == 404

        response = await client.put("/api/backorders/cancel", json={"orderId": str(uuid.uuid4())})
        assert response.status_code == 404

    async def test_admin_listing_and_fulfillment(self, client, db, admin_headers, customer, product, variant):
        for _ in range(2):
            await client.post("/api/backorders/create", json=backorder_body(customer, product, variant))

        response = await client.get("/api/admin/backorders", headers=admin_headers)
        listing = response.json()
        assert listing["total"] == 2
        assert [b["backorderPriority"] for b in listing["items"]] == [1, 2]

        response = await client.get("/api/admin/backorders", params={"status": "lost"}, headers=admin_headers)
        assert response.status_code == 400

        variant.stock = 1
        await db.commit()

        response = await client.put(
            "/api/admin/backorders/fulfill",
            json={"productId": str(product.id), "variantId": str(variant.id), "availableQuantity": 1},
            headers=admin_headers,
        )
        result = response.json()
        assert result["fulfilledOrders"] == [listing["items"][0]["id"]]
        assert result["remainingQuantity"] == 0

        response = await client.put(
            "/api/admin/backorders/fulfill",
            json={"productId": str(product.id), "variantId": str(uuid.uuid4()), "availableQuantity": 1},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Product variant not found"}

        response = await client.get("/api/admin/backorders/statistics", headers=admin_headers)
        assert response.json()["byStatus"]["PROCESSING"] == 1


class TestRestockDates:

    async def test_admin_flow(self, client, admin_headers, product, variant):
        url = "/api/admin/restock-dates"
        params = {"productId": str(product.id), "variantId": str(variant.id)}

        response = await client.post(url, json={**params, "expectedDate": future(), "notes": "Lieferung"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Restock date updated successfully"

        response = await client.get(url, params={**params, "history": "true"}, headers=admin_headers)
        body = response.json()
        assert body["restockDate"]["notes"] == "Lieferung"
        assert [h["action"] for h in body["history"]] == ["SET"]

        response = await client.get(url, headers=admin_headers)
        upcoming = response.json()
        assert upcoming["total"] == 1
        assert upcoming["upcomingRestocks"][0]["variantSku"] == "PULLI-M-NAVY"

        response = await client.delete(url, params=params, headers=admin_headers)
        assert response.json()["message"] == "Restock date cleared successfully"

        response = await client.delete(url, params=params, headers=admin_headers)
        assert response.status_code == 400

    async def test_past_date_rejected(self, client, admin_headers, product):
        response = await client.post(
            "/api/admin/restock-dates",
            json={"productId": str(product.id), "expectedDate": "2020-01-01T00:00:00Z"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Expected restock date must be in the future"

    async def test_bulk(self, client, admin_headers, product, variant):
        response = await client.post(
            "/api/admin/restock-dates",
            json={"updates": [
                {"productId": str(product.id), "variantId": str(variant.id), "expectedDate": future()},
                {"productId": str(uuid.uuid4()), "expectedDate": future()},
            ]},
            headers=admin_headers,
        )
        body = response.json()
        assert body["updatedCount"] == 1
        assert body["errors"] == ["Update 2: Product not found"]

    async def test_expired(self, client, admin_headers):
        response = await client.post("/api/admin/restock-dates/expired", headers=admin_headers)
        assert response.json() == {"processedCount": 0, "notificationsSent": 0}

    async def test_restock_display(self, client, admin_headers, product, variant, other_variant):
        url = f"/api/products/{product.id}/restock-display"

        response = await client.get(url, params={"variantId": str(variant.id)})
        assert response.json()["displayType"] == "no-date"

        await client.post(
            "/api/admin/restock-dates",
            json={"productId": str(product.id), "variantId": str(variant.id), "expectedDate": future(3)},
            headers=admin_headers,
        )
        response = await client.get(url, params={"variantId": str(variant.id)})
        body = response.json()
        assert body["shouldShow"] is True
        assert body["expectedDate"] is not None

        response = await client.get(url, params={"variantId": str(other_variant.id)})
        assert response.json()["shouldShow"] is False

        response = await client.get(f"/api/products/{uuid.uuid4()}/restock-display")
        assert response.status_code == 404


class TestWaitlist:

    async def test_subscribe_and_status(self, client, product, variant):
        body = {"email": "kunde@example.com", "productId": str(product.id), "variantId": str(variant.id)}

        response = await client.post("/api/waitlist/subscribe", json=body)
        assert response.json()["success"] is True

        params = {"email": "kunde@example.com", "productId": str(product.id), "variantId": str(variant.id)}
        response = await client.get("/api/waitlist/subscribe", params=params)
        assert response.json() == {"subscribed": True}

        response = await client.get("/api/waitlist/subscriptions", params={"email": "kunde@example.com"})
        assert response.json()["total"] == 1

        response = await client.request("DELETE", "/api/waitlist/unsubscribe", json=body)
        assert response.status_code == 200

        response = await client.request("DELETE", "/api/waitlist/unsubscribe", json=body)
        assert response.status_code == 404

    async def test_invalid_email(self, client, product):
        response = await client.post("/api/waitlist/subscribe", json={"email": "kein-email", "productId": str(product.id)})
        assert response.status_code == 400

    async def test_unsubscribe_link(self, client, product, variant):
        await client.post("/api/waitlist/subscribe", json={
            "email": "kunde@example.com",
            "productId": str(product.id),
            "variantId": str(variant.id),
        })
        link = urlparse(build_unsubscribe_url("kunde@example.com", product.id, variant.id))

        response = await client.get(f"{link.path}?{link.query}")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Successfully Unsubscribed" in response.text

        response = await client.get(f"{link.path}?{link.query}")
        assert response.status_code == 400
        assert "Subscription not found" in response.text

    async def test_unsubscribe_link_with_bad_token(self, client, product, variant):
        other_token = create_unsubscribe_token("jemand@example.com", product.id, variant.id)
        response = await client.get("/api/waitlist/unsubscribe", params={
            "email": "kunde@example.com",
            "productId": str(product.id),
            "variantId": str(variant.id),
            "token": other_token,
        })
        assert response.status_code == 400
        assert "Invalid or expired unsubscribe link" in response.text

    async def test_admin_analytics(self, client, admin_headers, product, variant):
        await client.post("/api/waitlist/subscribe", json={"email": "a@example.com", "productId": str(product.id)})

        response = await client.get("/api/admin/waitlists", headers=admin_headers)
        analytics = response.json()["analytics"]
        assert analytics["activeSubscriptions"] == 1

        response = await client.get("/api/admin/waitlists", params={"productId": str(product.id)}, headers=admin_headers)
        assert response.json()["total"] == 1


class TestNotifications:

    async def test_fanout_tracking_and_analytics(self, client, outbox, admin_headers, product, variant):
        await client.post("/api/waitlist/subscribe", json={
            "email": "a@example.com",
            "productId": str(product.id),
            "variantId": str(variant.id),
        })

        response = await client.post(
            "/api/notifications/restock",
            json={"productId": str(product.id)},
            headers=admin_headers,
        )
        assert response.json()["message"] == "Sent 1 of 1 notifications"

        pixel = outbox.messages[0].html.split("notificationId=")[1]
        notification_id = pixel.split("&")[0]

        response = await client.get("/api/notifications/status", params={"notificationId": notification_id, "action": "click"})
        assert response.json() == {"success": True, "message": "click event tracked"}

        response = await client.post("/api/notifications/status", json={"notificationId": notification_id})
        assert response.json()["message"] == "Email open tracked"

        response = await client.get("/api/notifications/status")
        analytics = response.json()["analytics"]
        assert analytics["totalSent"] == 1
        assert analytics["openRate"] == 100.0
        assert analytics["clickRate"] == 100.0

    async def test_tracking_errors(self, client):
        url = "/api/notifications/status"
        response = await client.get(url, params={"notificationId": str(uuid.uuid4()), "action": "dance"})
        assert response.status_code == 400

        response = await client.get(url, params={"notificationId": str(uuid.uuid4()), "action": "open"})
        assert response.status_code == 404

        response = await client.post(url, json={"notificationId": ""})
        assert response.status_code == 400

    async def test_test_notification(self, client, outbox, admin_headers):
        response = await client.post("/api/notifications/test", json={"email": "nope"}, headers=admin_headers)
        assert response.status_code == 400

        response = await client.post("/api/notifications/test", json={"email": "ops@attireburg.de"}, headers=admin_headers)
        assert response.status_code == 200
        assert outbox.to("ops@attireburg.de")

        outbox.fail = True
        response = await client.post("/api/notifications/test", json={"email": "ops@attireburg.de"}, headers=admin_headers)
        assert response.status_code == 502


class TestInventoryAndOrders:

    async def test_restock_event(self, client, outbox, admin_headers, customer, product, variant):
        await client.post("/api/backorders/create", json=backorder_body(customer, product, variant))

        response = await client.post(
            "/api/inventory/restock",
            json={"productId": str(product.id), "variantId": str(variant.id), "newStock": 4},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["backordersFulfilled"] == 1

        response = await client.get("/api/inventory/restock")
        assert response.json()["pendingBackorders"] == 0

        response = await client.post(
            "/api/inventory/restock",
            json={"productId": str(uuid.uuid4())},
            headers=admin_headers,
        )
        assert response.status_code == 404

    async def test_check_and_status(self, client, admin_headers, product, variant, other_variant):
        response = await client.post("/api/inventory/check", json={"items": [
            {"productId": str(product.id), "variantId": str(other_variant.id), "quantity": 2},
            {"productId": str(product.id), "variantId": str(variant.id), "quantity": 1},
        ]})
        body = response.json()
        assert body["available"] is False
        assert [i["available"] for i in body["items"]] == [True, False]

        response = await client.get("/api/inventory/status", params={"productId": str(product.id)}, headers=admin_headers)
        assert response.json()["totalStock"] == 5

        response = await client.get("/api/inventory/status", headers=admin_headers)
        assert [v["sku"] for v in response.json()["variants"]] == ["PULLI-M-NAVY", "PULLI-L-NAVY"]

    async def test_order_status_flow(self, client, outbox, admin_headers, customer_headers, customer, product, variant):
        response = await client.post("/api/backorders/create", json=backorder_body(customer, product, variant))
        order_id = response.json()["orderId"]

        response = await client.get(f"/api/orders/{order_id}/status")
        assert response.json()["statusLabel"] == "Ausstehend"

        response = await client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=admin_headers)
        assert response.status_code == 400

        response = await client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=admin_headers)
        assert response.json()["status"] == "CONFIRMED"

        response = await client.post(f"/api/orders/{order_id}/cancel", json={}, headers=customer_headers)
        assert response.status_code == 404

        response = await client.get(f"/api/orders/{uuid.uuid4()}/status")
        assert response.status_code == 404


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200


async def test_unknown_route(client):
    response = await client.get("/api/nope")
    assert response.status_code == 404
    assert "error" in response.json()
