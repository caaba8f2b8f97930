"""Tests for checkout, order queries, status changes, payments and promo codes."""

import asyncio
from datetime import timedelta

import pytest

from butchery.models import Order, utcnow


@pytest.fixture
async def order(client, products, dubai_zone, checkout_payload):
    """A placed order for 0.5 kg ribeye and 1 kg mince delivered in Dubai."""
    response = await client.post("/orders", json=checkout_payload)
    assert response.status_code == 201
    return response.json()["data"]


class TestCheckout:
    async def test_totals_and_initial_state(self, order):
        assert order["order_number"] == "ORD-000001"
        assert order["subtotal"] == 120.0
        assert order["vat_amount"] == 6.0
        assert order["delivery_fee"] == 15.0
        assert order["total"] == 141.0
        assert order["status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["delivery_zone_id"] == "zone_dubai"
        assert order["customer_mobile"] == "+971501234567"
        assert [h["status"] for h in order["status_history"]] == ["pending"]
        assert {i["product_id"] for i in order["items"]} == {"prod_ribeye", "prod_mince"}

    async def test_order_numbers_increase(self, client, order, checkout_payload):
        response = await client.post("/orders", json=checkout_payload)
        assert response.json()["data"]["order_number"] == "ORD-000002"

    async def test_duplicate_lines_merge(self, client, products, checkout_payload):
        checkout_payload["items"] = [
            {"product_id": "prod_ribeye", "quantity": 0.5},
            {"product_id": "prod_ribeye", "quantity": 0.25},
        ]
        data = (await client.post("/orders", json=checkout_payload)).json()["data"]

        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 0.75
        assert data["items"][0]["total_price"] == 30.0

    async def test_discounted_unit_price(self, client, products, checkout_payload):
        checkout_payload["items"] = [{"product_id": "prod_lamb", "quantity": 2}]
        data = (await client.post("/orders", json=checkout_payload)).json()["data"]

        assert data["items"][0]["unit_price"] == 58.5
        assert data["subtotal"] == 117.0
        assert data["vat_amount"] == 5.85

    async def test_express_fee_and_tip(self, client, products, dubai_zone, checkout_payload):
        checkout_payload.update(express_delivery=True, driver_tip=10)
        data = (await client.post("/orders", json=checkout_payload)).json()["data"]

        assert data["delivery_fee"] == 25.0
        assert data["driver_tip"] == 10.0
        assert data["total"] == 161.0

    async def test_unserved_emirate_has_no_fee(self, client, products, dubai_zone, checkout_payload):
        checkout_payload["delivery_address"]["emirate"] = "Fujairah"
        data = (await client.post("/orders", json=checkout_payload)).json()["data"]

        assert data["delivery_fee"] == 0.0
        assert data["delivery_zone_id"] is None
        assert data["total"] == 126.0

    async def test_unknown_product(self, client, products, checkout_payload):
        checkout_payload["items"] = [{"product_id": "prod_missing", "quantity": 1}]
        response = await client.post("/orders", json=checkout_payload)
        assert response.status_code == 404

    async def test_inactive_product(self, client, products, checkout_payload):
        checkout_payload["items"] = [{"product_id": "prod_chicken", "quantity": 1}]
        response = await client.post("/orders", json=checkout_payload)
        assert response.status_code == 400
        assert "not available" in response.json()["error"]

    async def test_invalid_phone_and_email(self, client, products, checkout_payload):
        checkout_payload.update(customer_mobile="0501234567", customer_email="nope")
        response = await client.post("/orders", json=checkout_payload)

        assert response.status_code == 400
        error = response.json()["error"]
        assert "UAE phone" in error
        assert "email" in error

    async def test_empty_basket_rejected(self, client, checkout_payload):
        checkout_payload["items"] = []
        response = await client.post("/orders", json=checkout_payload)
        assert response.status_code == 400


class TestOrderQueries:
    async def test_get_by_id_and_number(self, client, order):
        by_id = await client.get(f"/orders/{order['id']}")
        by_number = await client.get(f"/orders/number/{order['order_number']}")
        assert by_id.json()["data"]["id"] == by_number.json()["data"]["id"] == order["id"]

        missing = await client.get("/orders/order_missing")
        assert missing.status_code == 404

    async def test_filters_and_pagination(self, client, order, checkout_payload):
        checkout_payload["user_id"] = "user_2"
        await client.post("/orders", json=checkout_payload)

        page = (await client.get("/orders", params={"limit": 1})).json()["data"]
        assert page["total"] == 2
        assert len(page["orders"]) == 1

        mine = (await client.get("/orders", params={"user_id": "user_2"})).json()["data"]
        assert [o["user_id"] for o in mine["orders"]] == ["user_2"]

        await client.patch(f"/orders/{order['id']}/status", json={"status": "confirmed"})
        confirmed = (await client.get("/orders", params={"status": "confirmed"})).json()["data"]
        assert [o["id"] for o in confirmed["orders"]] == [order["id"]]


class TestStatusChanges:
    async def test_delivered_records_actor_and_captures_payment(self, client, order):
        response = await client.patch(
            f"/orders/{order['id']}/status",
            json={"status": "delivered", "notes": "Left with concierge"},
            headers={"x-user-id": "driver_7"},
        )
        data = response.json()["data"]

        assert data["status"] == "delivered"
        assert data["payment_status"] == "captured"
        assert data["actual_delivery_at"] is not None
        latest = data["status_history"][-1]
        assert latest["changed_by"] == "driver_7"
        assert latest["notes"] == "Left with concierge"
        assert len(data["status_history"]) == 2

    async def test_actor_defaults_to_admin(self, client, order):
        response = await client.patch(f"/orders/{order['id']}/status", json={"status": "processing"})
        assert response.json()["data"]["status_history"][-1]["changed_by"] == "admin"

    async def test_unknown_status_rejected(self, client, order):
        response = await client.patch(f"/orders/{order['id']}/status", json={"status": "lost"})
        assert response.status_code == 400

    async def test_cancel(self, client, order):
        response = await client.delete(f"/orders/{order['id']}")
        assert response.json()["data"]["status"] == "cancelled"

        again = await client.delete(f"/orders/{order['id']}")
        assert again.status_code == 400
        assert again.json()["error"] == "Cannot cancel order with status: cancelled"

    async def test_cancel_records_reason(self, client, order):
        response = await client.request(
            "DELETE", f"/orders/{order['id']}",
            json={"reason": "Customer changed their mind"},
            headers={"x-user-id": "support_3"},
        )
        latest = response.json()["data"]["status_history"][-1]
        assert latest["notes"] == "Customer changed their mind"
        assert latest["changed_by"] == "support_3"

    @pytest.mark.parametrize("final_status", ["delivered", "refunded"])
    async def test_finished_orders_cannot_be_cancelled(self, client, order, final_status):
        await client.patch(f"/orders/{order['id']}/status", json={"status": final_status})

        response = await client.delete(f"/orders/{order['id']}")
        assert response.status_code == 400
        assert response.json()["error"] == f"Cannot cancel order with status: {final_status}"
        assert (await client.get(f"/orders/{order['id']}")).json()["data"]["status"] == final_status


class TestOrderNumbers:
    async def test_numbers_taken_by_older_orders_are_skipped(self, client, db, products, checkout_payload):
        db.add(Order(
            order_number="ORD-000001", customer_name="Old", customer_email="old@example.com",
            customer_mobile="+971500000000", subtotal=100, vat_amount=5, total=105,
            payment_method="cod", delivery_address={},
        ))
        await db.commit()

        data = (await client.post("/orders", json=checkout_payload)).json()["data"]
        assert data["order_number"] == "ORD-000002"


async def test_concurrent_checkouts_get_distinct_numbers(file_client, checkout_payload):
    responses = await asyncio.gather(*(file_client.post("/orders", json=checkout_payload) for _ in range(3)))

    assert [r.status_code for r in responses] == [201, 201, 201]
    numbers = {r.json()["data"]["order_number"] for r in responses}
    assert numbers == {"ORD-000001", "ORD-000002", "ORD-000003"}


class TestPayments:
    async def test_authorized_payment_counts_in_finance_summary(self, client, order):
        response = await client.post(f"/orders/{order['id']}/payment", json={"status": "authorized"})
        assert response.json()["data"]["payment_status"] == "authorized"
        assert response.json()["message"] == "Payment status updated to authorized"

        summary = (await client.get("/finance/summary", params={"period": "today"})).json()["data"]
        assert summary["order_count"] == 1
        assert summary["gross_revenue"] == 141.0

    async def test_unknown_payment_status_rejected(self, client, order):
        response = await client.post(f"/orders/{order['id']}/payment", json={"status": "paid"})
        assert response.status_code == 400
        assert (await client.get(f"/orders/{order['id']}")).json()["data"]["payment_status"] == "pending"

    async def test_unknown_order(self, client):
        response = await client.post("/orders/order_missing/payment", json={"status": "captured"})
        assert response.status_code == 404


class TestOrderStats:
    async def test_counts_and_sales(self, client, order, checkout_payload):
        second = (await client.post("/orders", json=checkout_payload)).json()["data"]
        await client.delete(f"/orders/{second['id']}")

        stats = (await client.get("/orders/stats")).json()["data"]
        assert stats["total"] == 2
        assert stats["by_status"] == {"pending": 1, "cancelled": 1}
        assert stats["today_orders"] == 2
        assert stats["today_sales"] == 141.0
        assert stats["month_sales"] == 141.0
        assert stats["average_order_value"] == 141.0

    async def test_old_orders_fall_outside_today(self, client, db):
        db.add(Order(
            order_number="ORD-900001", customer_name="Old", customer_email="old@example.com",
            customer_mobile="+971500000000", subtotal=100, vat_amount=5, total=105,
            payment_method="cod", delivery_address={}, created_at=utcnow() - timedelta(days=3),
        ))
        await db.commit()

        stats = (await client.get("/orders/stats")).json()["data"]
        assert stats["today_orders"] == 0
        assert stats["week_orders"] == 1
        assert stats["week_sales"] == 105.0

    async def test_empty(self, client):
        stats = (await client.get("/orders/stats")).json()["data"]
        assert stats["total"] == 0
        assert stats["average_order_value"] == 0.0


async def create_code(client, **fields):
    body = {"code": "EID10", "type": "percentage", "value": 10, **fields}
    response = await client.post("/promo-codes", json=body)
    assert response.status_code == 201
    return response.json()["data"]


class TestPromoCodes:
    async def test_percentage_is_capped_and_vat_follows_discount(self, client, products, dubai_zone, checkout_payload):
        await create_code(client, minimum_order=100, maximum_discount=10)
        checkout_payload["discount_code"] = "eid10"

        data = (await client.post("/orders", json=checkout_payload)).json()["data"]
        assert data["discount"] == 10.0
        assert data["discount_code"] == "EID10"
        assert data["subtotal"] == 120.0
        assert data["vat_amount"] == 5.5
        assert data["total"] == 130.5

        codes = (await client.get("/promo-codes")).json()["data"]
        assert codes[0]["usage_count"] == 1

    async def test_fixed_discount(self, client, products, dubai_zone, checkout_payload):
        await create_code(client, code="FLAT20", type="fixed", value=20)
        checkout_payload["discount_code"] = "FLAT20"

        data = (await client.post("/orders", json=checkout_payload)).json()["data"]
        assert data["discount"] == 20.0
        assert data["vat_amount"] == 5.0
        assert data["total"] == 120.0

    async def test_below_minimum_rejected(self, client, products, checkout_payload):
        await create_code(client, minimum_order=200)
        checkout_payload["discount_code"] = "EID10"

        response = await client.post("/orders", json=checkout_payload)
        assert response.status_code == 400
        assert response.json()["error"] == "Minimum order of 200.00 AED required"

    async def test_usage_limit(self, client, products, checkout_payload):
        await create_code(client, usage_limit=1)
        checkout_payload["discount_code"] = "EID10"

        assert (await client.post("/orders", json=checkout_payload)).status_code == 201
        response = await client.post("/orders", json=checkout_payload)
        assert response.status_code == 400
        assert "usage limit" in response.json()["error"]

    async def test_expired_and_unknown_codes(self, client, products, checkout_payload):
        await create_code(client, valid_to=(utcnow() - timedelta(days=1)).isoformat())

        checkout_payload["discount_code"] = "EID10"
        expired = await client.post("/orders", json=checkout_payload)
        assert expired.json()["error"] == "This promo code has expired"

        checkout_payload["discount_code"] = "NOPE"
        unknown = await client.post("/orders", json=checkout_payload)
        assert unknown.json()["error"] == "Invalid promo code"

    async def test_validate_endpoint(self, client):
        await create_code(client, maximum_discount=15)

        data = (await client.post("/promo-codes/validate", json={"code": "eid10", "order_total": 300})).json()["data"]
        assert data == {"valid": True, "code": "EID10", "type": "percentage", "value": 10.0, "discount": 15.0}

    async def test_duplicate_code_conflicts(self, client):
        await create_code(client)
        response = await client.post("/promo-codes", json={"code": "eid10", "type": "fixed", "value": 5})
        assert response.status_code == 409

    async def test_update_and_delete(self, client):
        created = await create_code(client)

        updated = await client.put(f"/promo-codes/{created['id']}", json={"is_active": False})
        assert updated.json()["data"]["is_active"] is False

        await client.delete(f"/promo-codes/{created['id']}")
        assert (await client.get("/promo-codes")).json()["data"] == []


class TestOrderSource:
    async def test_defaults_to_web(self, order):
        assert order["source"] == "web"

    async def test_source_is_stored(self, client, products, checkout_payload):
        checkout_payload["source"] = "mobile"
        data = (await client.post("/orders", json=checkout_payload)).json()["data"]
        assert data["source"] == "mobile"
