"""
Tests for confirmation email rendering and the background delivery task.
"""

from datetime import date
from decimal import Decimal

import pytest

from app import tasks
from app.schemas import CartItem, CateringRequestCreate, OrderCreate
from app.services.notifications.emails import (
    calendar_link,
    delivery_window_label,
    expand_items,
    render_business_copy,
    render_catering_confirmation,
    render_order_confirmation,
)
from app.services.notifications import get_notification_service
from app.services.notifications.mock import MockNotificationService


def make_order(**overrides) -> OrderCreate:
    data = {
        "customer_name": "Ann",
        "customer_email": "a@x.com",
        "delivery_address": "1301 N Orange Ave",
        "delivery_date": "12/25/2025",
        "order_total": "42.50",
        "items": [{"item_name": "Pad Thai", "price": "14.99", "quantity": 2}],
    }
    data.update(overrides)
    return OrderCreate(**data)


# -----------------------------
# Line items
# -----------------------------


class TestExpandItems:
    def test_plain_item(self) -> None:
        lines = expand_items([CartItem(item_name="Pad Thai", price=Decimal("14.99"), quantity=2)])

        assert len(lines) == 1
        assert lines[0].label == "Pad Thai"
        assert lines[0].total == Decimal("29.98")

    def test_serves_and_size_in_label(self) -> None:
        item = CartItem(item_name="Khao Soi", price=Decimal("120"), selected_serves=10, selected_size="Full", quantity=1)
        assert expand_items([item])[0].label == "Khao Soi (Serves 10) (Full Tray)"

    def test_upgrades_follow_their_item(self) -> None:
        item = CartItem(
            item_name="Pad See Ew",
            price=Decimal("60"),
            quantity=1,
            upgrade_phad_thai_48_qty=1,
            upgrade_phad_thai_24_qty=2,
        )

        lines = expand_items([item])

        assert [(line.label, line.quantity, line.unit_price) for line in lines[1:]] == [
            ("Upgrade: Pad Thai (48 oz)", 1, Decimal("18")),
            ("Upgrade: Pad Thai (24 oz)", 2, Decimal("9")),
        ]

    @pytest.mark.parametrize(
        "name, size, label, price",
        [
            ("Sai Ua Sausage", "Half", "Add-on: Prik Noom Sauce (16oz)", Decimal("15")),
            ("Sai Ua Sausage", "Full", "Add-on: Prik Noom Sauce (32oz)", Decimal("25")),
            ("Moo Ping", "Half", "Add-on: Jao Sauce (16oz)", Decimal("15")),
            ("Moo Ping", None, "Add-on: Jao Sauce (32oz)", Decimal("25")),
        ],
    )
    def test_add_ons(self, name, size, label, price) -> None:
        item = CartItem(item_name=name, price=Decimal("50"), quantity=1, selected_size=size, add_on_qty=1)

        add_on = expand_items([item])[-1]

        assert add_on.label == label
        assert add_on.unit_price == price


# -----------------------------
# Rendering
# -----------------------------


class TestRendering:
    def test_delivery_window(self) -> None:
        assert delivery_window_label() == "5:00 PM - 7:00 PM"

    def test_calendar_link(self) -> None:
        url = calendar_link(date(2025, 12, 25), "abc", "1301 N Orange Ave")

        assert url.startswith("https://www.google.com/calendar/render?")
        assert "20251225T170000%2F20251225T190000" in url

    def test_calendar_link_without_date(self) -> None:
        assert calendar_link(None, "abc", "somewhere") is None

    def test_order_confirmation(self) -> None:
        content = render_order_confirmation(
            make_order(),
            "order-123",
            total=Decimal("38.25"),
            discount=Decimal("4.25"),
            delivery_date=date(2025, 12, 25),
        )

        assert content.subject.endswith("Order Confirmation")
        assert "order-123" in content.text
        assert "$38.25" in content.text
        assert "$4.25" in content.text
        assert "5:00 PM - 7:00 PM" in content.html

    def test_html_escapes_customer_input(self) -> None:
        content = render_order_confirmation(
            make_order(customer_name="<b>Ann</b>"), "order-123", total=Decimal("42.50")
        )

        assert "<b>Ann</b>" not in content.html
        assert "&lt;b&gt;Ann&lt;/b&gt;" in content.html

    def test_catering_confirmation(self) -> None:
        request = CateringRequestCreate(
            customer_name="Ann",
            customer_email="a@x.com",
            street_address="200 Event Hall Rd",
            requested_date="03/14/2026",
            cart_items=[{"item_name": "Khao Soi", "price": "120", "quantity": 1, "selected_size": "Full"}],
            total_price="120",
        )

        content = render_catering_confirmation(request, requested_date=date(2026, 3, 14))

        assert content.subject.endswith("Catering Request Confirmation")
        assert "March 14, 2026" in content.text
        assert "Khao Soi (Full Tray)" in content.html

    def test_business_copy(self) -> None:
        content = render_order_confirmation(make_order(), "order-123", total=Decimal("42.50"))

        copy = render_business_copy(content, "Order", "Ann", "order-123")

        assert copy.subject == "New Order from Ann - order-123"
        assert "New Order Received" in copy.html
        assert "order-123" in copy.text

    def test_business_copy_without_reference(self) -> None:
        content = render_order_confirmation(make_order(), "order-123", total=Decimal("42.50"))
        assert render_business_copy(content, "Catering Request", "Ann").subject == (
            "New Catering Request from Ann"
        )


# -----------------------------
# Delivery task
# -----------------------------


class TestSendEmailTask:
    def test_delivers_through_provider(self, monkeypatch) -> None:
        service = MockNotificationService(failure_rate=0.0, latency=False)
        monkeypatch.setattr(tasks, "get_notification_service", lambda: service)

        result = tasks.send_email("a@x.com", "Hello", "<p>Hi</p>", "Hi")

        assert result["success"] is True
        assert service.sent == [{
            "to": "a@x.com",
            "subject": "Hello",
            "html": "<p>Hi</p>",
            "text": "Hi",
            "reply_to": None,
        }]

    def test_provider_failure_raises(self, monkeypatch) -> None:
        service = MockNotificationService(failure_rate=1.0, latency=False)
        monkeypatch.setattr(tasks, "get_notification_service", lambda: service)

        with pytest.raises(tasks.EmailDeliveryError):
            tasks.send_email("a@x.com", "Hello", "<p>Hi</p>")


class TestNotificationFactory:
    def test_development_uses_mock(self) -> None:
        assert get_notification_service().provider_name == "mock"
