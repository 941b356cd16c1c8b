"""
services/cart_service.py

Cart and search logic behind the HTTP routes:
- register: find-or-create a user by email
- add_to_cart: quote one offer and store it as a price watch
- get_cart / clear_cart
- search_flights: stateless passthrough to the quote provider

Errors are raised as HTTPException with a {"error", "details", "code"} body.
"""

import logging
import re
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from cart_email import TEMPLATE_CART_ADDED, Notification
from config import DISPLAY_TIMEZONE, FLIGHT_SEARCH_MAX_RESULTS
from providers.amadeus import QuoteProviderError
from providers.factory import build_quote_query
from schemas.cart import ActionResponse, CartAddRequest, CartResponse
from schemas.flights import FlightSearchResponse
from schemas.users import RegisterResponse

logger = logging.getLogger(__name__)

IATA_CODE_RE = re.compile(r"^[A-Z]{3}$")
CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")

INVALID_IATA_MESSAGE = "Invalid origin or destination. Use 3-letter IATA airport codes (e.g., CCJ for Calicut)."


def _error(status_code: int, error: str, details: Optional[str] = None, code: Optional[str] = None) -> HTTPException:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    if code is not None:
        body["code"] = code
    return HTTPException(status_code=status_code, detail=body)


def is_iata_code(value: Optional[str]) -> bool:
    return bool(value) and IATA_CODE_RE.match(value) is not None


def validate_route(origin: Optional[str], destination: Optional[str]) -> None:
    if not (is_iata_code(origin) and is_iata_code(destination)):
        raise _error(400, INVALID_IATA_MESSAGE, code="INVALID_IATA")


def validate_party(adults: int, currency_code: str) -> None:
    if adults is None or int(adults) < 1:
        raise _error(400, "adults must be a positive integer", code="INVALID_ADULTS")
    if not CURRENCY_CODE_RE.match(currency_code or ""):
        raise _error(400, "currencyCode must be a 3-letter ISO currency code", code="INVALID_CURRENCY")


class CartService:
    def __init__(self, store, quote_client, notifier):
        self.store = store
        self.quote_client = quote_client
        self.notifier = notifier

    # =====================================================================
    # SECTION: USERS
    # =====================================================================

    def register(self, email: str, phone: Optional[str] = None) -> RegisterResponse:
        try:
            user_id, created = self.store.find_or_create_user(email, phone)
            cart = self.store.list_watches_for_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("[cart] register failed")
            raise _error(500, "Failed to process user", details=str(e), code="STORE_ERROR")

        verb = "Registered" if created else "Logged in"
        logger.info(f"[cart] {verb.lower()} user_id={user_id}")
        return RegisterResponse(
            userId=user_id,
            created=created,
            message=f"{verb} with email: {email}",
            cart=[w.to_out() for w in cart],
        )

    # =====================================================================
    # SECTION: CART
    # =====================================================================

    def add_to_cart(self, payload: CartAddRequest) -> ActionResponse:
        if not (payload.userId and payload.origin and payload.destination and payload.departureDate):
            raise _error(
                400,
                "Missing required fields: userId, origin, destination, departureDate",
                code="MISSING_FIELDS",
            )
        validate_route(payload.origin, payload.destination)
        validate_party(payload.adults, payload.currencyCode)

        try:
            user_email = self.store.get_user_email(payload.userId)
        except SQLAlchemyError as e:
            logger.exception("[cart] user lookup failed")
            raise _error(500, "Failed to add flight to cart", details=str(e), code="STORE_ERROR")
        if not user_email:
            raise _error(404, "User not found", code="USER_NOT_FOUND")

        query = build_quote_query(
            origin=payload.origin,
            destination=payload.destination,
            departure_date=payload.departureDate,
            return_date=payload.returnDate,
            adults=payload.adults,
            currency_code=payload.currencyCode,
            max_results=1,
        )

        try:
            offers = self.quote_client.search_offers(query)
        except QuoteProviderError as e:
            logger.error(f"[cart] quote failed code={e.code} description={e.description}")
            raise _error(500, "Failed to add flight to cart", details=e.description, code=e.code)

        if not offers:
            raise _error(404, "No flights found for the specified route", code="NO_OFFERS")

        offer = offers[0]

        try:
            watch = self.store.add_watch(
                user_id=payload.userId,
                origin=payload.origin,
                destination=payload.destination,
                departure_date=payload.departureDate,
                return_date=payload.returnDate,
                adults=payload.adults,
                currency_code=payload.currencyCode,
                airline=offer.airline,
                flight_number=offer.flightNumber,
                price=offer.price.total,
            )
        except SQLAlchemyError as e:
            logger.exception("[cart] insert failed")
            raise _error(500, "Failed to add flight to cart", details=str(e), code="STORE_ERROR")

        logger.info(
            f"[cart] added watch_id={watch.id} user_id={payload.userId} "
            f"route={watch.origin}-{watch.destination} price={watch.price} {watch.currency_code}"
        )

        notification = Notification(
            template=TEMPLATE_CART_ADDED,
            to_address=user_email,
            fields={
                "origin": watch.origin,
                "destination": watch.destination,
                "departure_date": watch.departure_date.isoformat(),
                "airline": offer.airline,
                "flight_number": offer.flightNumber,
                "departure_time": offer.departure.timeLocal,
                "arrival_time": offer.arrival.timeLocal,
                "timezone_label": DISPLAY_TIMEZONE,
                "price": watch.price,
                "currency_code": watch.currency_code,
                "adults": watch.adults,
            },
        )
        try:
            self.notifier.notify(notification)
        except Exception as e:
            # The watch is saved, a missed confirmation is not worth failing the request
            logger.error(f"[cart] confirmation email failed watch_id={watch.id}: {e}")

        return ActionResponse(message="Flight added to cart")

    def get_cart(self, user_id: int) -> CartResponse:
        try:
            watches = self.store.list_watches_for_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("[cart] fetch failed")
            raise _error(500, "Failed to fetch cart", details=str(e), code="STORE_ERROR")
        return CartResponse(data=[w.to_out() for w in watches])

    def clear_cart(self, user_id: Optional[int]) -> ActionResponse:
        if not user_id:
            raise _error(400, "Missing required field: userId", code="MISSING_FIELDS")
        try:
            if self.store.get_user_email(user_id) is None:
                raise _error(404, "User not found", code="USER_NOT_FOUND")
            removed = self.store.clear_watches_for_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("[cart] clear failed")
            raise _error(500, "Failed to clear cart", details=str(e), code="STORE_ERROR")

        logger.info(f"[cart] cleared user_id={user_id} removed={removed}")
        return ActionResponse(message="Cart cleared")

    # =====================================================================
    # SECTION: SEARCH
    # =====================================================================

    def search_flights(
        self,
        origin: Optional[str],
        destination: Optional[str],
        departure_date: Optional[date],
        adults: int = 1,
        currency_code: str = "INR",
    ) -> FlightSearchResponse:
        if not (origin and destination and departure_date):
            raise _error(
                400,
                "Missing required parameters: origin, destination, departureDate",
                code="MISSING_FIELDS",
            )
        validate_route(origin, destination)
        validate_party(adults, currency_code)

        query = build_quote_query(
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            adults=adults,
            currency_code=currency_code,
            max_results=FLIGHT_SEARCH_MAX_RESULTS,
        )
        try:
            offers = self.quote_client.search_offers(query)
        except QuoteProviderError as e:
            logger.error(f"[search] quote failed code={e.code} description={e.description}")
            raise _error(500, "Failed to fetch flight details", details=e.description, code=e.code)

        return FlightSearchResponse(data=offers[:FLIGHT_SEARCH_MAX_RESULTS])


_DEFAULT_SERVICE: Optional[CartService] = None


def get_cart_service() -> CartService:
    """FastAPI dependency; tests swap it out through app.dependency_overrides."""
    global _DEFAULT_SERVICE
    if _DEFAULT_SERVICE is None:
        from cart_email import EmailNotifier
        from db import SessionLocal
        from providers.factory import get_quote_client
        from services.watch_store import WatchStore

        _DEFAULT_SERVICE = CartService(
            store=WatchStore(SessionLocal),
            quote_client=get_quote_client(),
            notifier=EmailNotifier(),
        )
    return _DEFAULT_SERVICE
