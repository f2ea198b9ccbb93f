# app/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_checkout_service, status_for, unwrap
from app.domain.errors import ErrorCode
from app.domain.schemas import (
    CheckoutIn,
    CreateOrderIn,
    CustomerCheckoutDetails,
    OrderCreationResult,
    OrderDeletionResult,
    OrderOut,
)
from app.services.checkout_service import CheckoutService

router = APIRouter(tags=["orders"])


@router.get("/checkout/details", response_model=CustomerCheckoutDetails)
def checkout_details(
    customer_id: str | None = Query(None),
    svc: CheckoutService = Depends(get_checkout_service),
):
    details = svc.get_customer_details_for_checkout(customer_id)
    if details.error == "User not authenticated":
        raise HTTPException(status_code=401, detail=details.error)
    return details


@router.post("/checkout", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Zamienia aktywny koszyk klienta na zamowienie.
    Powiadomienie wysylane asynchronicznie.
    """
    return unwrap(svc.checkout(payload.customer_id, payload.payment_method, payload.notes))


@router.post("/orders", response_model=OrderCreationResult, status_code=201)
def create_order(
    payload: CreateOrderIn,
    svc: CheckoutService = Depends(get_checkout_service),
):
    created = svc.create_order(payload)
    if created.error:
        code = created.code or ErrorCode.ORDER_CREATE_ERROR
        raise HTTPException(status_code=status_for(code, 400), detail={"code": code, "message": created.error})
    return created


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    svc: CheckoutService = Depends(get_checkout_service),
):
    return unwrap(svc.get_order(order_id))


@router.delete("/orders/{order_id}", response_model=OrderDeletionResult)
def delete_order(
    order_id: str,
    svc: CheckoutService = Depends(get_checkout_service),
):
    result = svc.delete_order(order_id)
    if not result.success and result.error.endswith("Order not found"):
        raise HTTPException(status_code=404, detail={"code": ErrorCode.ORDER_NOT_FOUND, "message": result.error})
    return result
