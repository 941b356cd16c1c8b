"""schemas/flights.py - Pydantic models for quote queries and mapped flight offers."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from config import DEFAULT_CURRENCY


class QuoteQuery(BaseModel):
    origin: str
    destination: str
    departureDate: date
    returnDate: Optional[date] = None
    adults: int = 1
    currencyCode: str = DEFAULT_CURRENCY

    # The price watch only ever asks for the top-ranked offer
    maxResults: int = 1

    # Comma separated carrier codes, e.g. "6E,AI,QR"
    includedAirlineCodes: Optional[str] = None


class FlightEndpoint(BaseModel):
    airport: str
    time: Optional[str] = None
    timeLocal: Optional[str] = None


class OfferPrice(BaseModel):
    # TOTAL for the whole party, not per passenger
    total: Decimal
    currency: str


class FlightOffer(BaseModel):
    airline: str
    flightNumber: str
    departure: FlightEndpoint
    arrival: FlightEndpoint
    duration: Optional[str] = None
    price: OfferPrice


class FlightSearchResponse(BaseModel):
    success: bool = True
    data: List[FlightOffer]
