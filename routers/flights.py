"""routers/flights.py - Stateless flight search passthrough."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from config import DEFAULT_CURRENCY
from schemas.flights import FlightSearchResponse
from services.cart_service import CartService, get_cart_service

router = APIRouter()


@router.get("/flights", response_model=FlightSearchResponse)
def search_flights(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    departureDate: Optional[date] = None,
    adults: int = 1,
    currencyCode: str = DEFAULT_CURRENCY,
    service: CartService = Depends(get_cart_service),
):
    return service.search_flights(
        origin=origin,
        destination=destination,
        departure_date=departureDate,
        adults=adults,
        currency_code=currencyCode,
    )
