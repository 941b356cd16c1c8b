"""routers/users.py - Registration / login by email."""

from fastapi import APIRouter, Depends

from schemas.users import RegisterPayload, RegisterResponse
from services.cart_service import CartService, get_cart_service

router = APIRouter()


@router.post("/register", response_model=RegisterResponse)
def register(payload: RegisterPayload, service: CartService = Depends(get_cart_service)):
    return service.register(payload.email, payload.phone)
