import logging
import smtplib
from decimal import Decimal
from email.message import EmailMessage
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from config import (
    ALERT_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USERNAME,
)

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30

TEMPLATE_PRICE_DROP = "price_drop"
TEMPLATE_CART_ADDED = "cart_added"


class NotifierNotConfigured(RuntimeError):
    pass


# =======================================
# SECTION: NOTIFICATION PAYLOAD
# =======================================

class Notification(BaseModel):
    """Template key plus the fields the template needs. Formatting happens in render_notification."""

    template: str
    to_address: str
    fields: Dict[str, Any] = Field(default_factory=dict)


def _fmt_money(value: Any) -> str:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def _render_price_drop(f: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Flight Price Drop Alert: {f['origin']} to {f['destination']}"

    lines = [
        f"Good news! The price for your flight from {f['origin']} to {f['destination']} "
        f"on {f['departure_date']} has dropped by {f['reduction_percentage']:.2f}%.",
        "",
        f"New Price: {_fmt_money(f['new_price'])} {f['currency_code']}",
        f"Old Price: {_fmt_money(f['old_price'])} {f['currency_code']}",
        "",
        "Book now to save!",
    ]
    return subject, "\n".join(lines)


def _render_cart_added(f: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Flight Added to Cart: {f['origin']} to {f['destination']}"

    lines = [
        f"Your flight from {f['origin']} to {f['destination']} has been added to your cart.",
        "",
        "Details:",
        f"- Flight: {f['airline']}{f['flight_number']}",
        f"- Departure: {f.get('departure_time') or f.get('departure_date')} ({f.get('timezone_label', 'local')})",
        f"- Arrival: {f.get('arrival_time') or '-'} ({f.get('timezone_label', 'local')})",
        f"- Price: {_fmt_money(f['price'])} {f['currency_code']}",
        f"- Passengers: {f['adults']}",
        "",
        "We will email you if the price drops.",
    ]
    return subject, "\n".join(lines)


_RENDERERS: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    TEMPLATE_PRICE_DROP: _render_price_drop,
    TEMPLATE_CART_ADDED: _render_cart_added,
}


def render_notification(notification: Notification) -> Tuple[str, str]:
    renderer = _RENDERERS.get(notification.template)
    if renderer is None:
        raise ValueError(f"Unknown notification template {notification.template!r}")
    return renderer(notification.fields)


# =======================================
# SECTION: SMTP NOTIFIER
# =======================================

class EmailNotifier:
    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USERNAME,
        password: Optional[str] = SMTP_PASSWORD,
        from_email: Optional[str] = ALERT_FROM_EMAIL,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email

    def send(self, to_address: str, subject: str, body: str) -> None:
        if not (self.username and self.password and self.from_email):
            raise NotifierNotConfigured("SMTP settings are not fully configured on the server")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_address
        msg.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.starttls()
            server.login(self.username, self.password)
            server.send_message(msg)

        logger.info(f"[email] sent to={to_address} subject={subject!r}")

    def notify(self, notification: Notification) -> None:
        subject, body = render_notification(notification)
        self.send(notification.to_address, subject, body)
