"""schemas/cart.py - Pydantic models for cart (price watch) endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from config import DEFAULT_CURRENCY


class CartAddRequest(BaseModel):
    userId: Optional[int] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    departureDate: Optional[date] = None
    returnDate: Optional[date] = None
    adults: int = 1
    currencyCode: str = DEFAULT_CURRENCY


class ClearCartRequest(BaseModel):
    userId: Optional[int] = None


class CartFlightOut(BaseModel):
    id: int
    origin: str
    destination: str
    departure_date: date
    return_date: Optional[date] = None
    adults: int
    currency_code: str
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    price: Decimal
    created_at: Optional[datetime] = None


class CartResponse(BaseModel):
    success: bool = True
    data: List[CartFlightOut]


class ActionResponse(BaseModel):
    success: bool = True
    message: str


class WatchSnapshot(BaseModel):
    """Detached copy of a cart_flights row, safe to pass between threads."""

    id: int
    user_id: int
    origin: str
    destination: str
    departure_date: date
    return_date: Optional[date] = None
    adults: int
    currency_code: str
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    price: Decimal
    created_at: Optional[datetime] = None

    def to_out(self) -> CartFlightOut:
        return CartFlightOut(**self.model_dump(exclude={"user_id"}))
