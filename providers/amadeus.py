"""
providers/amadeus.py

Amadeus Self-Service API helpers:
- OAuth2 client-credentials token, cached until shortly before expiry
- Flight Offers Search (GET /v2/shopping/flight-offers)
- Offer-to-FlightOffer mapping (first itinerary, first segment)

PRICE CONTRACT:
- offer.price.total is the TOTAL for all adults in the query
- FlightOffer.price.total keeps that total (the cart stores party totals)
"""

import logging
import threading
import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import requests

from config import (
    AMADEUS_API_KEY,
    AMADEUS_API_SECRET,
    AMADEUS_BASE_URL,
    DISPLAY_TIMEZONE,
    QUOTE_TIMEOUT_SECONDS,
)
from schemas.flights import FlightEndpoint, FlightOffer, OfferPrice, QuoteQuery

logger = logging.getLogger(__name__)

DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Refresh the token this many seconds before Amadeus says it expires
_TOKEN_EXPIRY_MARGIN_SECONDS = 60


# =====================================================================
# SECTION: ERRORS
# =====================================================================

class QuoteProviderError(Exception):
    """Raised for any provider failure: HTTP error, timeout, bad payload."""

    def __init__(self, code: str, description: str, status_code: Optional[int] = None):
        super().__init__(f"{code}: {description}")
        self.code = str(code)
        self.description = description
        self.status_code = status_code


def _error_from_response(resp: requests.Response) -> QuoteProviderError:
    """Amadeus errors look like {"errors": [{"code": 477, "title": ..., "detail": ...}]}."""
    code = f"HTTP_{resp.status_code}"
    description = (resp.text or "")[:500]
    try:
        errors = (resp.json() or {}).get("errors") or []
    except ValueError:
        errors = []
    if errors and isinstance(errors[0], dict):
        first = errors[0]
        if first.get("code") is not None:
            code = str(first["code"])
        description = first.get("detail") or first.get("title") or description
    return QuoteProviderError(code, description, status_code=resp.status_code)


# =====================================================================
# SECTION: TIME HELPERS
# =====================================================================

def to_display_time(iso_value: Optional[str], tz_name: str = DISPLAY_TIMEZONE) -> Optional[str]:
    """
    Amadeus returns airport-local times without an offset ("2025-05-10T06:15:00").
    Naive values are shown as-is, offset-aware values are converted to tz_name.
    """
    if not iso_value:
        return None
    try:
        dt = datetime.fromisoformat(iso_value)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(tz_name))
    return dt.strftime(DISPLAY_TIME_FORMAT)


# =====================================================================
# SECTION: OFFER MAPPING
# =====================================================================

def map_amadeus_offer(offer: Dict[str, Any]) -> FlightOffer:
    itineraries = offer.get("itineraries") or []
    if not itineraries:
        raise QuoteProviderError("MALFORMED_OFFER", "offer has no itineraries")
    itinerary = itineraries[0] or {}
    segments = itinerary.get("segments") or []
    if not segments:
        raise QuoteProviderError("MALFORMED_OFFER", "itinerary has no segments")
    segment = segments[0] or {}

    price = offer.get("price") or {}
    try:
        total = Decimal(str(price.get("total")))
    except (InvalidOperation, ValueError):
        raise QuoteProviderError("MALFORMED_OFFER", f"unparseable price total {price.get('total')!r}")

    dep = segment.get("departure") or {}
    arr = segment.get("arrival") or {}

    return FlightOffer(
        airline=str(segment.get("carrierCode") or ""),
        flightNumber=str(segment.get("number") or ""),
        departure=FlightEndpoint(
            airport=str(dep.get("iataCode") or ""),
            time=dep.get("at"),
            timeLocal=to_display_time(dep.get("at")),
        ),
        arrival=FlightEndpoint(
            airport=str(arr.get("iataCode") or ""),
            time=arr.get("at"),
            timeLocal=to_display_time(arr.get("at")),
        ),
        duration=itinerary.get("duration"),
        price=OfferPrice(total=total, currency=str(price.get("currency") or "")),
    )


# =====================================================================
# SECTION: CLIENT
# =====================================================================

class AmadeusClient:
    """Thread safe: the token cache is guarded, requests.Session is shared."""

    def __init__(
        self,
        api_key: str = AMADEUS_API_KEY,
        api_secret: str = AMADEUS_API_SECRET,
        base_url: str = AMADEUS_BASE_URL,
        timeout: float = QUOTE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    # ---- Auth ----

    def _access_token(self) -> str:
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            if not (self.api_key and self.api_secret):
                raise QuoteProviderError("NOT_CONFIGURED", "AMADEUS_API_KEY / AMADEUS_API_SECRET are not set")

            try:
                resp = self.session.post(
                    f"{self.base_url}/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.api_key,
                        "client_secret": self.api_secret,
                    },
                    timeout=self.timeout,
                )
            except requests.Timeout:
                raise QuoteProviderError("TIMEOUT", "token request timed out")
            except requests.RequestException as e:
                raise QuoteProviderError("NETWORK_ERROR", f"token request failed: {e}")

            if resp.status_code >= 400:
                raise _error_from_response(resp)

            try:
                body = resp.json()
                token = body["access_token"]
            except (ValueError, KeyError, TypeError):
                raise QuoteProviderError("MALFORMED_RESPONSE", "token response missing access_token")

            expires_in = int(body.get("expires_in") or 0)
            self._token = token
            self._token_expires_at = time.monotonic() + max(0, expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS)
            logger.info(f"[amadeus] token refreshed expires_in={expires_in}")
            return token

    def _invalidate_token(self) -> None:
        with self._token_lock:
            self._token = None
            self._token_expires_at = 0.0

    # ---- Search ----

    def _build_params(self, query: QuoteQuery) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "originLocationCode": query.origin,
            "destinationLocationCode": query.destination,
            "departureDate": query.departureDate.isoformat(),
            "adults": int(query.adults),
            "currencyCode": query.currencyCode,
            "max": int(query.maxResults),
        }
        if query.returnDate:
            params["returnDate"] = query.returnDate.isoformat()
        if query.includedAirlineCodes:
            params["includedAirlineCodes"] = query.includedAirlineCodes
        return params

    def _get_offers(self, params: Dict[str, Any]) -> requests.Response:
        token = self._access_token()
        try:
            return self.session.get(
                f"{self.base_url}/v2/shopping/flight-offers",
                headers={"Authorization": f"Bearer {token}"},
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise QuoteProviderError("TIMEOUT", f"flight-offers timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise QuoteProviderError("NETWORK_ERROR", f"flight-offers request failed: {e}")

    def search_offers(self, query: QuoteQuery) -> List[FlightOffer]:
        """
        Top-ranked offers first, at most query.maxResults.
        Empty list when the route has no offers. Raises QuoteProviderError otherwise.
        """
        params = self._build_params(query)
        resp = self._get_offers(params)

        # Expired or revoked token, retry once with a fresh one
        if resp.status_code == 401:
            self._invalidate_token()
            resp = self._get_offers(params)

        if resp.status_code >= 400:
            err = _error_from_response(resp)
            logger.warning(
                f"[amadeus] flight-offers {query.origin}->{query.destination} "
                f"status={resp.status_code} code={err.code} description={err.description}"
            )
            raise err

        try:
            data = (resp.json() or {}).get("data")
        except ValueError:
            raise QuoteProviderError("MALFORMED_RESPONSE", "flight-offers body is not JSON")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise QuoteProviderError("MALFORMED_RESPONSE", "flight-offers data is not a list")

        offers = [map_amadeus_offer(o) for o in data[: max(1, int(query.maxResults))]]
        logger.debug(
            f"[amadeus] flight-offers {query.origin}->{query.destination} "
            f"date={query.departureDate} offers={len(offers)}"
        )
        return offers
