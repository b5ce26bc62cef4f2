"""
HTTP-level tests: status codes and response bodies of the public endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app import main
from app.services.notifications.mock import MockNotificationService
from app.services.payment.mock import MockPaymentService


ORDER = {
    "customer_name": "Ann",
    "customer_email": "a@x.com",
    "customer_phone": "555-1111",
    "consent_to_updates": True,
    "delivery_address": "1301 N Orange Ave",
    "delivery_date": "12/25/2025 (Thursday)",
    "order_total": "42.50",
    "tip_amount": "5.00",
    "sales_tax": "2.98",
    "items": [
        {"item_name": "Pad Thai", "category": "Noodles", "price": "14.99", "quantity": 2,
         "upgrade_phad_thai_24_qty": 1},
    ],
}

CATERING = {
    "customer_name": "Ann",
    "customer_email": "a@x.com",
    "customer_phone": "555-1111",
    "street_address": "200 Event Hall Rd",
    "requested_date": "03/14/2026",
    "event_details": "Birthday",
    "cart_items": [{"item_name": "Khao Soi", "price": "120", "quantity": 1, "selected_size": "Full"}],
    "total_price": "120",
}


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture
def payment_service(monkeypatch) -> MockPaymentService:
    service = MockPaymentService(failure_rate=0.0, min_latency=0, max_latency=0)
    monkeypatch.setattr(main, "get_payment_service", lambda: service)
    return service


@pytest.fixture
def notification_service(monkeypatch) -> MockNotificationService:
    service = MockNotificationService(failure_rate=0.0, latency=False)
    monkeypatch.setattr(main, "get_notification_service", lambda: service)
    return service


# -----------------------------
# Root
# -----------------------------


async def test_root(client) -> None:
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["health"] == "/health"


# -----------------------------
# Orders & catering
# -----------------------------


class TestOrderEndpoints:
    async def test_create_order(self, client, queued_emails) -> None:
        response = await client.post("/api/orders", json=ORDER)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["total"] == 42.5
        assert body["discount_amount"] == 0
        assert {"order_uuid", "customer_id", "customer_uuid"} <= body.keys()
        assert [mail["to"] for mail in queued_emails] == ["a@x.com", "info@misasthai.com"]
        assert "Upgrade: Pad Thai (24 oz)" in queued_emails[0]["text"]
        assert queued_emails[1]["subject"].startswith("New Order from Ann - ")

    async def test_same_customer_twice(self, client) -> None:
        first = (await client.post("/api/orders", json=ORDER)).json()
        second = (await client.post("/api/orders", json={**ORDER, "customer_phone": "555-2222"})).json()

        assert first["customer_uuid"] == second["customer_uuid"]
        assert first["order_uuid"] != second["order_uuid"]

    async def test_missing_identity(self, client) -> None:
        response = await client.post(
            "/api/orders", json={**ORDER, "customer_email": "", "customer_phone": ""}
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid input - email or phone required",
            "reason": "invalid_identity",
            "detail": None,
        }

    async def test_invalid_delivery_date(self, client) -> None:
        response = await client.post("/api/orders", json={**ORDER, "delivery_date": "asap"})

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_delivery_date"

    async def test_schema_validation(self, client) -> None:
        payload = {key: value for key, value in ORDER.items() if key != "delivery_address"}
        response = await client.post("/api/orders", json=payload)
        assert response.status_code == 422

    async def test_order_with_discount_code(self, client, add_discount_code) -> None:
        await add_discount_code("SAVE10", value="10")

        response = await client.post(
            "/api/orders", json={**ORDER, "order_total": "50.00", "discount_code": "save10"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["discount_amount"] == 5.0
        assert body["total"] == 45.0
        assert body["discount_code"] == "SAVE10"

    async def test_order_with_expired_code(self, client, add_discount_code) -> None:
        await add_discount_code("SAVE10", expires_in=timedelta(days=-1))

        response = await client.post("/api/orders", json={**ORDER, "discount_code": "SAVE10"})

        assert response.status_code == 400
        assert response.json()["reason"] == "code_expired"

    async def test_create_catering_request(self, client, queued_emails) -> None:
        response = await client.post("/api/catering-requests", json=CATERING)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert isinstance(body["catering_request_id"], int)
        assert {"catering_request_uuid", "customer_id", "customer_uuid"} <= body.keys()
        assert "Khao Soi (Full Tray)" in queued_emails[0]["text"]


# -----------------------------
# Discount codes
# -----------------------------


class TestDiscountEndpoints:
    async def test_validate(self, client, add_discount_code) -> None:
        await add_discount_code("SAVE10", value="10", description="Ten off")

        response = await client.post(
            "/api/discount-codes/validate", json={"code": "save10", "order_amount": "50.00"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "is_valid": True,
            "code": "SAVE10",
            "discount_amount": 5.0,
            "description": "Ten off",
            "discount_type": "percentage",
        }

    @pytest.mark.parametrize(
        "setup, status, reason",
        [
            ({}, 404, "code_not_found"),
            ({"expires_in": timedelta(days=-1)}, 400, "code_expired"),
            ({"minimum": "100"}, 400, "minimum_not_met"),
            ({"max_uses": 3, "current_uses": 3}, 400, "max_uses_reached"),
        ],
    )
    async def test_validate_rejections(self, client, add_discount_code, setup, status, reason) -> None:
        if setup:
            await add_discount_code("PROMO", **setup)

        response = await client.post(
            "/api/discount-codes/validate", json={"code": "PROMO", "order_amount": "50"}
        )

        assert response.status_code == status
        assert response.json()["success"] is False
        assert response.json()["reason"] == reason

    async def test_admin_lifecycle(self, client) -> None:
        created = await client.post("/api/discount-codes", json={
            "code": "summer",
            "discount_value": "15",
            "max_uses": 2,
            "description": "Summer promo",
            "expires_at": future(),
        })
        assert created.status_code == 201
        assert created.json()["code"] == "SUMMER"
        assert created.json()["discount_type"] == "percentage"
        assert created.json()["current_uses"] == 0

        fetched = await client.get("/api/discount-codes/summer")
        assert fetched.status_code == 200
        assert fetched.json()["max_uses"] == 2

        listed = await client.get("/api/discount-codes")
        assert [code["code"] for code in listed.json()] == ["SUMMER"]

        updated = await client.put("/api/discount-codes/SUMMER", json={"discount_value": "20"})
        assert updated.status_code == 200
        assert updated.json()["discount_value"] == 20.0
        assert updated.json()["description"] == "Summer promo"

        assert (await client.post("/api/discount-codes/SUMMER/increment")).json()["current_uses"] == 1
        assert (await client.post("/api/discount-codes/SUMMER/increment")).json()["current_uses"] == 2
        exhausted = await client.post("/api/discount-codes/SUMMER/increment")
        assert exhausted.status_code == 400
        assert exhausted.json()["reason"] == "max_uses_reached"

        deleted = await client.delete("/api/discount-codes/SUMMER")
        assert deleted.status_code == 200
        assert (await client.get("/api/discount-codes/SUMMER")).status_code == 404
        assert (await client.get("/api/discount-codes")).json() == []

    async def test_create_with_past_expiry(self, client) -> None:
        response = await client.post("/api/discount-codes", json={
            "code": "LATE",
            "discount_value": "5",
            "expires_at": future(days=-1),
        })

        assert response.status_code == 400
        assert response.json()["error"] == "Expiration date must be in the future"

    async def test_delete_unknown_code(self, client) -> None:
        response = await client.delete("/api/discount-codes/NOPE")
        assert response.status_code == 404
        assert response.json()["reason"] == "code_not_found"


# -----------------------------
# Payments & email relay
# -----------------------------


class TestPaymentEndpoint:
    async def test_successful_capture(self, client, payment_service) -> None:
        response = await client.post("/api/payments", json={
            "amount": "42.50",
            "payment_token": "tok_visa",
            "idempotency_key": "order-1",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["payment_id"].startswith("pi_mock_")
        assert body["amount"] == 42.5
        assert body["idempotency_key"] == "order-1"

    async def test_idempotency_key_generated_when_missing(self, client, payment_service) -> None:
        response = await client.post("/api/payments", json={"amount": "10", "payment_token": "tok_visa"})
        assert response.json()["idempotency_key"]

    async def test_retry_with_same_key_does_not_charge_twice(self, client, payment_service) -> None:
        payload = {"amount": "10", "payment_token": "tok_visa", "idempotency_key": "order-2"}
        first = (await client.post("/api/payments", json=payload)).json()
        second = (await client.post("/api/payments", json=payload)).json()
        assert first["payment_id"] == second["payment_id"]

    async def test_declined_card(self, client, payment_service) -> None:
        response = await client.post("/api/payments", json={
            "amount": "10",
            "payment_token": "tok_chargeDeclined",
        })

        assert response.status_code == 402
        assert response.json()["reason"] == "card_declined"


class TestEmailEndpoint:
    async def test_relay(self, client, notification_service) -> None:
        response = await client.post("/api/emails", json={
            "to": "a@x.com",
            "subject": "Hello",
            "html_body": "<p>Hi</p>",
            "plain_text_body": "Hi",
        })

        assert response.status_code == 200
        assert notification_service.sent[0]["to"] == "a@x.com"

    async def test_missing_recipient(self, client, notification_service) -> None:
        response = await client.post("/api/emails", json={"to": "", "subject": "Hello"})
        assert response.status_code == 400
        assert notification_service.sent == []

    async def test_provider_rejection(self, client, monkeypatch) -> None:
        failing = MockNotificationService(failure_rate=1.0, latency=False)
        monkeypatch.setattr(main, "get_notification_service", lambda: failing)

        response = await client.post("/api/emails", json={"to": "a@x.com", "subject": "Hello"})

        assert response.status_code == 502
