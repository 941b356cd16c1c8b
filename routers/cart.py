"""routers/cart.py - Cart routes: add, list, clear."""

from fastapi import APIRouter, Depends

from schemas.cart import ActionResponse, CartAddRequest, CartResponse, ClearCartRequest
from services.cart_service import CartService, get_cart_service

router = APIRouter()


@router.post("/cart", response_model=ActionResponse, status_code=201)
def add_to_cart(payload: CartAddRequest, service: CartService = Depends(get_cart_service)):
    return service.add_to_cart(payload)


@router.get("/cart/{user_id}", response_model=CartResponse)
def get_cart(user_id: int, service: CartService = Depends(get_cart_service)):
    return service.get_cart(user_id)


@router.post("/clear-cart", response_model=ActionResponse)
def clear_cart(payload: ClearCartRequest, service: CartService = Depends(get_cart_service)):
    return service.clear_cart(payload.userId)
