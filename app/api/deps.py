# app/api/deps.py
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import ErrorCode
from app.domain.schemas import ServiceResult
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.product_client import ProductClient
from app.services.product_lookup import CatalogProductLookup
from app.utils.cache import TTLCache
from app.utils.settings import CART_CACHE_TTL_SECONDS, PRODUCT_LOOKUP_BACKEND


# kod bledu -> status HTTP, nieznane kody to 500
_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.CART_ITEM_NOT_FOUND: 404,
    ErrorCode.PRODUCT_NOT_FOUND: 404,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED_CART_ACCESS: 403,
    ErrorCode.INSUFFICIENT_STOCK: 409,
    ErrorCode.CART_EMPTY: 409,
    ErrorCode.CART_INVALID: 409,
    ErrorCode.ADDRESS_REQUIRED: 409,
    ErrorCode.PRODUCT_LOOKUP_ERROR: 503,
    ErrorCode.GATEWAY_ERROR: 503,
}


def status_for(code: str, default: int = 500) -> int:
    return _STATUS_BY_CODE.get(code, default)


def unwrap(result: ServiceResult):
    """Zwraca data albo rzuca HTTPException z {code, message}."""
    if result.success:
        return result.data

    err = result.error
    detail = {"code": err.code, "message": err.message}
    if err.details is not None:
        detail["details"] = err.details
    raise HTTPException(status_code=status_for(err.code), detail=detail)


def get_cache(request: Request) -> TTLCache:
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        cache = TTLCache(default_ttl=CART_CACHE_TTL_SECONDS)
        request.app.state.cache = cache
    return cache


def build_product_lookup(db: Session, cache: TTLCache):
    if PRODUCT_LOOKUP_BACKEND == "http":
        return ProductClient()
    return CatalogProductLookup(db, cache)


def get_product_lookup(db: Session = Depends(get_db), cache: TTLCache = Depends(get_cache)):
    return build_product_lookup(db, cache)


def get_cart_service(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
    product_lookup=Depends(get_product_lookup),
) -> CartService:
    return CartService(db=db, product_lookup=product_lookup, cache=cache)


def get_checkout_service(
    db: Session = Depends(get_db),
    cart_service: CartService = Depends(get_cart_service),
) -> CheckoutService:
    return CheckoutService(db=db, cart_service=cart_service)
