# app/domain/schemas.py
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, List, Optional
from decimal import Decimal
from datetime import datetime


CART_STATUS_ACTIVE = "active"
ORDER_STATUS_PENDING_CONFIRMATION = "Pending Confirmation"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"


# =====================================================
# RESULT
# =====================================================
class ErrorInfo(BaseModel):
    message: str
    code: str
    details: Any = None


class ServiceResult(BaseModel):
    """Jednolity wynik operacji serwisu: success + data albo error."""

    success: bool
    data: Any = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, details: Any = None) -> "ServiceResult":
        return cls(success=False, error=ErrorInfo(code=code, message=message, details=details))


# =====================================================
# PRODUCTS
# =====================================================
class ProductSnapshot(BaseModel):
    """Stan produktu w chwili odczytu (cena, stan magazynowy, aktywnosc)."""

    id: str
    name: str
    price: Decimal
    stock: int = Field(..., ge=0)
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# CART
# =====================================================
class AddToCartIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str
    quantity: int


class UpdateCartItemIn(BaseModel):
    """Schema dla zmiany ilosci pozycji koszyka."""

    item_id: str
    quantity: int


class CartItemOut(BaseModel):
    id: str
    cart_id: str
    product_id: str
    product: Optional[ProductSnapshot] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CartOut(BaseModel):
    id: str
    customer_id: str
    status: str
    items: List[CartItemOut]
    total_amount: Decimal
    total_items: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CartIssue(BaseModel):
    """Blad albo ostrzezenie z walidacji koszyka."""

    item_id: str
    product_id: str
    type: str
    message: str
    current_stock: Optional[int] = None
    requested_quantity: Optional[int] = None
    old_price: Optional[Decimal] = None
    new_price: Optional[Decimal] = None


class CartValidationResult(BaseModel):
    is_valid: bool
    errors: List[CartIssue] = []
    warnings: List[CartIssue] = []


class ClearCartOut(BaseModel):
    cart_id: str
    removed_items: int


# =====================================================
# ORDERS / CHECKOUT
# =====================================================
class CheckoutLine(BaseModel):
    """Pozycja zamowienia: produkt + ilosc (unit_price nadpisuje cene produktu)."""

    id: Optional[str] = None
    quantity: int
    product: ProductSnapshot
    unit_price: Optional[Decimal] = None

    @property
    def price(self) -> Decimal:
        return self.unit_price if self.unit_price is not None else self.product.price


class CreateOrderIn(BaseModel):
    customer_id: str
    shipping_address_id: str
    items: List[CheckoutLine]
    total_amount: Decimal
    delivery_fee: Decimal = Decimal("0")
    payment_method: PaymentMethod
    notes: Optional[str] = None


class OrderCreationResult(BaseModel):
    order_id: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None


class OrderDeletionResult(BaseModel):
    success: bool
    error: Optional[str] = None


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    quantity: int
    price: Decimal
    total_price: Decimal


class OrderOut(BaseModel):
    id: str
    customer_id: str
    shipping_address_id: Optional[str] = None
    status: str
    items: List[OrderItemOut]
    subtotal: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    payment_method: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class CheckoutIn(BaseModel):
    customer_id: str = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: Optional[str] = None


class AddressOut(BaseModel):
    id: str
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerCheckoutDetails(BaseModel):
    customer_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[AddressOut] = None
    error: Optional[str] = None
