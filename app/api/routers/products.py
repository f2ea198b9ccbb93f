# app/api/routers/products.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_product_lookup
from app.domain.errors import ErrorCode, ProductLookupError, ProductNotFound
from app.domain.schemas import ProductSnapshot

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[ProductSnapshot])
def list_products(lookup=Depends(get_product_lookup)):
    """Aktywne produkty z katalogu."""
    if not hasattr(lookup, "list_products"):
        raise HTTPException(
            status_code=501,
            detail={"code": ErrorCode.PRODUCT_LOOKUP_ERROR, "message": "Product listing is not available"},
        )
    try:
        return lookup.list_products()
    except ProductLookupError:
        raise HTTPException(
            status_code=503,
            detail={"code": ErrorCode.PRODUCT_LOOKUP_ERROR, "message": "Failed to fetch products"},
        )


@router.get("/{product_id}", response_model=ProductSnapshot)
def get_product(product_id: str, lookup=Depends(get_product_lookup)):
    try:
        return lookup.get_product(product_id)
    except ProductNotFound:
        raise HTTPException(
            status_code=404,
            detail={"code": ErrorCode.PRODUCT_NOT_FOUND, "message": "Product not found"},
        )
    except ProductLookupError:
        raise HTTPException(
            status_code=503,
            detail={"code": ErrorCode.PRODUCT_LOOKUP_ERROR, "message": "Failed to fetch product"},
        )
