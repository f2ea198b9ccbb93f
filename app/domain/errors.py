# app/domain/errors.py
from typing import Any


class ErrorCode:
    """Stale kody bledow zwracane klientom (nie zmieniaja sie miedzy wersjami)."""

    VALIDATION_ERROR = "VALIDATION_ERROR"

    CART_FETCH_ERROR = "CART_FETCH_ERROR"
    CART_ACCESS_ERROR = "CART_ACCESS_ERROR"
    CART_CLEAR_ERROR = "CART_CLEAR_ERROR"
    CART_ITEM_NOT_FOUND = "CART_ITEM_NOT_FOUND"
    CART_ITEM_ADD_ERROR = "CART_ITEM_ADD_ERROR"
    CART_ITEM_UPDATE_ERROR = "CART_ITEM_UPDATE_ERROR"
    CART_ITEM_REMOVE_ERROR = "CART_ITEM_REMOVE_ERROR"
    UNAUTHORIZED_CART_ACCESS = "UNAUTHORIZED_CART_ACCESS"
    CART_EMPTY = "CART_EMPTY"
    CART_INVALID = "CART_INVALID"

    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    PRODUCT_LOOKUP_ERROR = "PRODUCT_LOOKUP_ERROR"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"

    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_FETCH_ERROR = "ORDER_FETCH_ERROR"
    ORDER_CREATE_ERROR = "ORDER_CREATE_ERROR"
    ADDRESS_REQUIRED = "ADDRESS_REQUIRED"

    GATEWAY_ERROR = "GATEWAY_ERROR"


class ServiceError(Exception):
    """
    Oczekiwany blad operacji serwisu.
    Nigdy nie wychodzi poza serwis, zamieniany na ServiceResult z success=False.
    """

    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class InvalidRequestError(ServiceError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, {"field": field} if field else None)
        self.field = field


class NotFoundError(ServiceError):
    pass


class AccessDeniedError(ServiceError):
    pass


class BusinessRuleError(ServiceError):
    pass


class SystemFailure(ServiceError):
    """Blad bazy/uslugi zewnetrznej juz sklasyfikowany przez operacje."""


class GatewayError(Exception):
    """Blad warstwy persystencji (repozytoria)."""

    def __init__(self, operation: str, message: str, transient: bool = False):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message
        self.transient = transient


class ProductNotFound(Exception):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ProductLookupError(Exception):
    """Chwilowy blad odczytu produktu (siec, baza) - inny niz brak produktu."""

    def __init__(self, product_id: str, message: str):
        super().__init__(f"Product {product_id} lookup failed: {message}")
        self.product_id = product_id
