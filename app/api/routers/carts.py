#app/api/routers/carts.py
from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import get_cart_service, unwrap
from app.domain.schemas import (
    AddToCartIn,
    CartOut,
    CartValidationResult,
    ClearCartOut,
    UpdateCartItemIn,
)
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.get_or_create_cart(customer_id))


@router.post("/items", response_model=CartOut)
def add_item(
    payload: AddToCartIn,
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.add_item(customer_id, payload))


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: str,
    quantity: int = Body(..., embed=True),
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.update_item(customer_id, UpdateCartItemIn(item_id=item_id, quantity=quantity)))


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: str,
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.remove_item(customer_id, item_id))


@router.delete("", response_model=ClearCartOut)
def clear_cart(
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.clear_cart(customer_id))


@router.get("/validate", response_model=CartValidationResult)
def validate_cart(
    customer_id: str = Query(...),
    svc: CartService = Depends(get_cart_service),
):
    """Sprawdza koszyk przed checkout (stan, cena, dostepnosc)."""
    return unwrap(svc.validate_cart(customer_id))
