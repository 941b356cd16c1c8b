"""schemas/users.py - Pydantic models for registration / login."""

from typing import List, Optional

from pydantic import BaseModel, EmailStr

from schemas.cart import CartFlightOut


class RegisterPayload(BaseModel):
    email: EmailStr
    phone: Optional[str] = None


class RegisterResponse(BaseModel):
    success: bool = True
    userId: int
    created: bool
    message: str
    cart: List[CartFlightOut]
