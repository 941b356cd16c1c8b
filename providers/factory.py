"""
providers/factory.py

Builds the quote provider client selected by the FLIGHT_PROVIDER env var.

Currently supported values:
  amadeus: Amadeus Self-Service Flight Offers Search (default)

Any client handed to the cart service or the price watch must expose
search_offers(QuoteQuery) -> List[FlightOffer] and raise
QuoteProviderError on provider failure.
"""

from typing import List, Optional, Protocol

from config import DEFAULT_CURRENCY, FLIGHT_PROVIDER, included_airlines_for
from schemas.flights import FlightOffer, QuoteQuery


class QuoteClient(Protocol):
    def search_offers(self, query: QuoteQuery) -> List[FlightOffer]:
        ...


_CLIENT: Optional[QuoteClient] = None


def get_quote_client() -> QuoteClient:
    """Process-wide client, created on first use."""
    global _CLIENT
    if _CLIENT is not None:
        return _CLIENT

    provider = FLIGHT_PROVIDER
    if provider != "amadeus":
        raise RuntimeError(f"Unsupported FLIGHT_PROVIDER={provider!r}")

    from providers.amadeus import AmadeusClient
    _CLIENT = AmadeusClient()
    return _CLIENT


def build_quote_query(
    origin: str,
    destination: str,
    departure_date,
    adults: int = 1,
    currency_code: str = DEFAULT_CURRENCY,
    return_date=None,
    max_results: int = 1,
) -> QuoteQuery:
    """Canonical query builder, applies the per-origin airline filter."""
    return QuoteQuery(
        origin=origin,
        destination=destination,
        departureDate=departure_date,
        returnDate=return_date,
        adults=max(1, int(adults or 1)),
        currencyCode=currency_code,
        maxResults=max_results,
        includedAirlineCodes=included_airlines_for(origin),
    )
