from decimal import Decimal

import pytest

import cart_email
from cart_email import (
    TEMPLATE_CART_ADDED,
    TEMPLATE_PRICE_DROP,
    EmailNotifier,
    Notification,
    NotifierNotConfigured,
    render_notification,
)


def _price_drop():
    return Notification(
        template=TEMPLATE_PRICE_DROP,
        to_address="alice@example.com",
        fields={
            "origin": "COK",
            "destination": "BOM",
            "departure_date": "2030-01-11",
            "reduction_percentage": Decimal("20.00"),
            "new_price": Decimal("4000.00"),
            "old_price": Decimal("5000.00"),
            "currency_code": "INR",
        },
    )


def test_price_drop_rendering():
    subject, body = render_notification(_price_drop())

    assert subject == "Flight Price Drop Alert: COK to BOM"
    assert "from COK to BOM on 2030-01-11 has dropped by 20.00%" in body
    assert "New Price: 4000.00 INR" in body
    assert "Old Price: 5000.00 INR" in body


def test_cart_added_rendering():
    notification = Notification(
        template=TEMPLATE_CART_ADDED,
        to_address="alice@example.com",
        fields={
            "origin": "COK",
            "destination": "BOM",
            "departure_date": "2030-01-11",
            "airline": "6E",
            "flight_number": "6171",
            "departure_time": "2030-01-11 06:15:00",
            "arrival_time": "2030-01-11 08:20:00",
            "timezone_label": "Asia/Kolkata",
            "price": Decimal("4321.50"),
            "currency_code": "INR",
            "adults": 2,
        },
    )

    subject, body = render_notification(notification)

    assert subject == "Flight Added to Cart: COK to BOM"
    assert "- Flight: 6E6171" in body
    assert "- Departure: 2030-01-11 06:15:00 (Asia/Kolkata)" in body
    assert "- Price: 4321.50 INR" in body
    assert "- Passengers: 2" in body


def test_unknown_template():
    with pytest.raises(ValueError):
        render_notification(Notification(template="nope", to_address="a@example.com"))


def test_unconfigured_smtp_raises():
    notifier = EmailNotifier(username=None, password=None, from_email=None)

    with pytest.raises(NotifierNotConfigured):
        notifier.notify(_price_drop())


def test_notify_sends_over_smtp(monkeypatch):
    sent = {}

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            sent["host"] = host
            sent["port"] = port

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            sent["tls"] = True

        def login(self, user, password):
            sent["login"] = (user, password)

        def send_message(self, msg):
            sent["msg"] = msg

    monkeypatch.setattr(cart_email.smtplib, "SMTP", FakeSMTP)
    notifier = EmailNotifier(
        host="smtp.example.com",
        port=2525,
        username="bot@example.com",
        password="secret",
        from_email="alerts@example.com",
    )

    notifier.notify(_price_drop())

    assert sent["host"] == "smtp.example.com"
    assert sent["port"] == 2525
    assert sent["tls"] is True
    assert sent["login"] == ("bot@example.com", "secret")
    msg = sent["msg"]
    assert msg["To"] == "alice@example.com"
    assert msg["From"] == "alerts@example.com"
    assert msg["Subject"] == "Flight Price Drop Alert: COK to BOM"
    assert "dropped by 20.00%" in msg.get_content()
