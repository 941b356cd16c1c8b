"""
Shared fixtures: a throwaway SQLite database, an in-memory quote provider and
a recording notifier. Environment is set before any project module is imported
because config.py and db.py read it at import time.
"""

import os
import sys
import tempfile
import threading
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

_TMP_DIR = tempfile.mkdtemp(prefix="fare-cart-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["PRICE_WATCH_ENABLED"] = "false"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["INCLUDED_AIRLINES_BY_ORIGIN"] = "CCJ:6E,AI,QR"
for _var in ("SMTP_USERNAME", "SMTP_PASSWORD", "EMAIL_USER", "EMAIL_PASS", "ALERT_FROM_EMAIL"):
    os.environ.pop(_var, None)

# Project modules live at the repository root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from db import Base, SessionLocal, engine
import models  # noqa: F401
from providers.amadeus import QuoteProviderError
from schemas.flights import FlightEndpoint, FlightOffer, OfferPrice
from services.watch_store import WatchStore


# =====================================================================
# SECTION: FAKES
# =====================================================================

def make_offer(total, currency="INR", airline="6E", number="123") -> FlightOffer:
    return FlightOffer(
        airline=airline,
        flightNumber=number,
        departure=FlightEndpoint(airport="COK", time="2030-01-01T06:00:00", timeLocal="2030-01-01 06:00:00"),
        arrival=FlightEndpoint(airport="BOM", time="2030-01-01T08:00:00", timeLocal="2030-01-01 08:00:00"),
        duration="PT2H",
        price=OfferPrice(total=Decimal(str(total)), currency=currency),
    )


class FakeQuoteClient:
    """
    Route-keyed responses. A value may be a price, None (no offers), a list of
    prices, or an exception instance to raise.
    """

    def __init__(self, responses=None, default=None):
        self.responses = dict(responses or {})
        self.default = default
        self.queries = []
        self._lock = threading.Lock()

    def set(self, origin, destination, value):
        self.responses[(origin, destination)] = value

    def search_offers(self, query):
        with self._lock:
            self.queries.append(query)
        value = self.responses.get((query.origin, query.destination), self.default)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [make_offer(v, currency=query.currencyCode) for v in value][: query.maxResults]
        return [make_offer(value, currency=query.currencyCode)]


class FakeNotifier:
    def __init__(self, fail_for=None):
        self.sent = []
        self.fail_for = set(fail_for or [])
        self._lock = threading.Lock()

    def notify(self, notification):
        if notification.to_address in self.fail_for:
            raise RuntimeError("smtp down")
        with self._lock:
            self.sent.append(notification)


# =====================================================================
# SECTION: FIXTURES
# =====================================================================

@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def store():
    return WatchStore(SessionLocal)


@pytest.fixture
def quotes():
    return FakeQuoteClient()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def today():
    return date(2030, 1, 10)


@pytest.fixture
def add_watch(store, today):
    """Create (or reuse) a user and insert a watch; returns the WatchSnapshot."""

    def _add(
        email="alice@example.com",
        origin="COK",
        destination="BOM",
        departure_offset=1,
        price="5000",
        currency="INR",
        adults=1,
        return_offset=None,
    ):
        user_id, _ = store.find_or_create_user(email)
        return store.add_watch(
            user_id=user_id,
            origin=origin,
            destination=destination,
            departure_date=today + timedelta(days=departure_offset),
            return_date=(today + timedelta(days=return_offset)) if return_offset is not None else None,
            adults=adults,
            currency_code=currency,
            airline="6E",
            flight_number="123",
            price=Decimal(price),
        )

    return _add


def provider_error(code="500", description="upstream down"):
    return QuoteProviderError(code, description)
