from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict
import time
from urllib.parse import quote

from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.domain.errors import (
    AccessDeniedError,
    BusinessRuleError,
    ErrorCode,
    GatewayError,
    InvalidRequestError,
    NotFoundError,
    ProductLookupError,
    ProductNotFound,
    ServiceError,
    SystemFailure,
)
from app.domain.schemas import (
    AddToCartIn,
    CartIssue,
    CartItemOut,
    CartOut,
    CartValidationResult,
    ClearCartOut,
    ProductSnapshot,
    ServiceResult,
    UpdateCartItemIn,
)
from app.repos.cart_repo import CartRepo
from app.services.product_lookup import ProductLookup
from app.utils.cache import TTLCache
from app.utils.settings import (
    CART_CACHE_TTL_SECONDS,
    CART_TTL_SECONDS,
    LOW_STOCK_THRESHOLD,
    MAX_ITEM_QUANTITY,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _require_customer(customer_id: str) -> None:
    if not customer_id or not str(customer_id).strip():
        raise InvalidRequestError("Customer ID is required", "customer_id")


def _check_quantity(quantity: int) -> None:
    if quantity is None or quantity <= 0:
        raise InvalidRequestError("Quantity must be greater than 0", "quantity")
    if quantity > MAX_ITEM_QUANTITY:
        raise InvalidRequestError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}", "quantity")


class CartService:
    """
    Koszyk klienta: get-or-create, add, update, remove, clear, validate.

    - kazda operacja kluczowana customer_id (juz uwierzytelnionym)
    - odczyt koszyka przez TTLCache (cart:<customer_id>:...), zapisy zawsze do bazy
    - po kazdym zapisie invalidate_customer_cart, takze gdy zapis sie nie udal
    - bledy biznesowe/walidacji wracaja jako ServiceResult(success=False),
      nieznane wyjatki ida wyzej

    Dwa rownolegle add dla tego samego koszyka NIE sa serializowane
    (read-check-write bez blokady), stan magazynu sprawdzany best-effort.
    """

    def __init__(
        self,
        db: Session,
        product_lookup: ProductLookup,
        cache: TTLCache,
    ):
        self.repo = CartRepo(db)
        self.product_lookup = product_lookup
        self.cache = cache

    # =====================================================
    # CACHE
    # =====================================================
    @staticmethod
    def _cache_prefix(customer_id: str) -> str:
        # ":" w id klienta kodowany, prefiks "a:" nie moze objac klienta "a:b"
        return f"cart:{quote(str(customer_id), safe='')}:"

    @classmethod
    def _cache_key(cls, customer_id: str, operation: str) -> str:
        return f"{cls._cache_prefix(customer_id)}{operation}"

    def invalidate_customer_cart(self, customer_id: str) -> int:
        removed = self.cache.invalidate_by_prefix(self._cache_prefix(customer_id))
        logger.info(f"Invalidated {removed} cached cart entries for customer {customer_id}")
        return removed

    def clear_cache(self, key: str | None = None) -> None:
        if key:
            self.cache.invalidate(key)
            logger.info(f"Cart cache key {key} cleared")
        else:
            self.cache.clear()
            logger.info("Cart cache cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    # =====================================================
    # RESULT
    # =====================================================
    def _run(self, action: str, customer_id: str, operation: Callable, *args) -> ServiceResult:
        """Wykonuje operacje i zamienia oczekiwane bledy na ServiceResult."""
        started = time.perf_counter()
        try:
            data = operation(*args)
        except SystemFailure as e:
            logger.error(f"{action} failed for customer {customer_id}: [{e.code}] {e.message}")
            return ServiceResult.fail(e.code, e.message, e.details)
        except ServiceError as e:
            logger.warning(f"{action} rejected for customer {customer_id}: [{e.code}] {e.message}")
            return ServiceResult.fail(e.code, e.message, e.details)
        except GatewayError as e:
            logger.error(f"{action} gateway failure for customer {customer_id}: {e}")
            return ServiceResult.fail(
                ErrorCode.GATEWAY_ERROR,
                f"An unexpected error occurred during {action}",
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{action} completed for customer {customer_id} in {elapsed_ms:.1f} ms")
        return ServiceResult.ok(data)

    # =====================================================
    # QUERY
    # =====================================================
    def get_or_create_cart(self, customer_id: str, fresh: bool = False) -> ServiceResult:
        return self._run("get_or_create_cart", customer_id, self._get_or_create_cart, customer_id, fresh)

    def get_cart(self, customer_id: str) -> ServiceResult:
        return self.get_or_create_cart(customer_id)

    def validate_cart(self, customer_id: str) -> ServiceResult:
        return self._run("validate_cart", customer_id, self._validate_cart, customer_id)

    # =====================================================
    # COMMANDS
    # =====================================================
    def add_item(self, customer_id: str, data: AddToCartIn) -> ServiceResult:
        return self._run("add_item", customer_id, self._add_item, customer_id, data)

    def update_item(self, customer_id: str, data: UpdateCartItemIn) -> ServiceResult:
        return self._run("update_item", customer_id, self._update_item, customer_id, data)

    def remove_item(self, customer_id: str, item_id: str) -> ServiceResult:
        return self._run("remove_item", customer_id, self._remove_item, customer_id, item_id)

    def clear_cart(self, customer_id: str) -> ServiceResult:
        return self._run("clear_cart", customer_id, self._clear_cart, customer_id)

    # =====================================================
    # IMPLEMENTATION
    # =====================================================
    @staticmethod
    def _expiry() -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=CART_TTL_SECONDS)

    @staticmethod
    def _to_cart_out(cart: CartModel) -> CartOut:
        items = []
        total_amount = Decimal("0.00")
        total_items = 0

        for i in sorted(cart.items, key=lambda x: (x.created_at, x.id)):
            unit_price = Decimal(i.price)
            total_price = unit_price * i.quantity
            items.append(
                CartItemOut(
                    id=i.id,
                    cart_id=cart.id,
                    product_id=i.product_id,
                    product=ProductSnapshot.model_validate(i.product) if i.product else None,
                    quantity=i.quantity,
                    unit_price=unit_price,
                    total_price=total_price,
                    created_at=i.created_at,
                    updated_at=i.updated_at,
                )
            )
            total_amount += total_price
            total_items += i.quantity

        return CartOut(
            id=cart.id,
            customer_id=cart.customer_id,
            status=cart.status,
            items=items,
            total_amount=total_amount,
            total_items=total_items,
            expires_at=cart.expires_at,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )

    def _get_or_create_cart(self, customer_id: str, fresh: bool = False) -> CartOut:
        _require_customer(customer_id)
        key = self._cache_key(customer_id, "get_or_create_cart")

        if not fresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cart for customer {customer_id} served from cache")
                return cached.model_copy(deep=True)

        try:
            cart = self.repo.get_active_cart(customer_id)
            if cart is None:
                cart = self.repo.create_cart(customer_id, self._expiry())
                logger.info(f"Created cart {cart.id} for customer {customer_id}")
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_FETCH_ERROR, "Failed to fetch cart") from e

        out = self._to_cart_out(cart)
        self.cache.set(key, out.model_copy(deep=True), CART_CACHE_TTL_SECONDS)
        return out

    def _fetch_product(self, product_id: str) -> ProductSnapshot:
        try:
            product = self.product_lookup.get_product(product_id, fresh=True)
        except ProductNotFound as e:
            raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, "Product not found") from e
        except ProductLookupError as e:
            raise SystemFailure(ErrorCode.PRODUCT_LOOKUP_ERROR, "Failed to fetch product") from e

        if not product.is_active:
            raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, "Product not found")
        return product

    def _load_owned_item(self, customer_id: str, item_id: str):
        try:
            item = self.repo.get_cart_item_with_cart(item_id)
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_FETCH_ERROR, "Failed to fetch cart item") from e

        if item is None:
            raise NotFoundError(ErrorCode.CART_ITEM_NOT_FOUND, "Cart item not found")

        if item.cart.customer_id != customer_id:
            raise AccessDeniedError(ErrorCode.UNAUTHORIZED_CART_ACCESS, "Unauthorized cart access")

        return item

    def _add_item(self, customer_id: str, data: AddToCartIn) -> CartOut:
        _require_customer(customer_id)
        if not data.product_id:
            raise InvalidRequestError("Product ID is required", "product_id")
        _check_quantity(data.quantity)

        product = self._fetch_product(data.product_id)
        if product.stock < data.quantity:
            raise BusinessRuleError(
                ErrorCode.INSUFFICIENT_STOCK,
                f"Insufficient stock for {product.name}. "
                f"Available: {product.stock}, Requested: {data.quantity}",
                {"product_id": product.id, "current_stock": product.stock, "requested_quantity": data.quantity},
            )

        try:
            cart = self._get_or_create_cart(customer_id)
        except ServiceError as e:
            raise SystemFailure(ErrorCode.CART_ACCESS_ERROR, "Failed to get cart") from e

        try:
            existing = self.repo.get_cart_item(cart.id, product.id)
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_FETCH_ERROR, "Failed to check cart item") from e

        if existing:
            # zawsze sumujemy ilosci, stan sprawdzany dla sumy a nie dla przyrostu
            new_quantity = existing.quantity + data.quantity
            if new_quantity > product.stock:
                raise BusinessRuleError(
                    ErrorCode.INSUFFICIENT_STOCK,
                    f"Total quantity for {product.name} would exceed stock. "
                    f"Available: {product.stock}, Total requested: {new_quantity}",
                    {"product_id": product.id, "current_stock": product.stock, "requested_quantity": new_quantity},
                )
            if new_quantity > MAX_ITEM_QUANTITY:
                raise InvalidRequestError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}", "quantity")

        try:
            if existing:
                logger.info(
                    f"Product {product.id} already in cart {cart.id}, increasing quantity "
                    f"from {existing.quantity} to {new_quantity}"
                )
                self.repo.update_cart_item_quantity(existing.id, new_quantity)
            else:
                logger.info(f"Adding product {product.id} to cart {cart.id}")
                self.repo.add_cart_item(cart.id, product.id, data.quantity, product.price)

            self.repo.touch_cart(cart.id, self._expiry())
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_ITEM_ADD_ERROR, "Failed to add item to cart") from e
        finally:
            self.invalidate_customer_cart(customer_id)

        return self._get_or_create_cart(customer_id)

    def _update_item(self, customer_id: str, data: UpdateCartItemIn) -> CartOut:
        _require_customer(customer_id)
        if not data.item_id:
            raise InvalidRequestError("Item ID is required", "item_id")
        _check_quantity(data.quantity)

        item = self._load_owned_item(customer_id, data.item_id)

        product = item.product
        if product is None or not product.is_active:
            raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, "Product not found")

        if product.stock < data.quantity:
            raise BusinessRuleError(
                ErrorCode.INSUFFICIENT_STOCK,
                f"Insufficient stock for {product.name}. "
                f"Available: {product.stock}, Requested: {data.quantity}",
                {"product_id": product.id, "current_stock": product.stock, "requested_quantity": data.quantity},
            )

        try:
            self.repo.update_cart_item_quantity(item.id, data.quantity)
            self.repo.touch_cart(item.cart_id, self._expiry())
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_ITEM_UPDATE_ERROR, "Failed to update cart item") from e
        finally:
            self.invalidate_customer_cart(customer_id)

        logger.info(f"Cart item {item.id} quantity set to {data.quantity}")
        return self._get_or_create_cart(customer_id)

    def _remove_item(self, customer_id: str, item_id: str) -> CartOut:
        _require_customer(customer_id)
        if not item_id:
            raise InvalidRequestError("Item ID is required", "item_id")

        item = self._load_owned_item(customer_id, item_id)

        try:
            self.repo.delete_cart_item(item.id)
            self.repo.touch_cart(item.cart_id, self._expiry())
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_ITEM_REMOVE_ERROR, "Failed to remove cart item") from e
        finally:
            self.invalidate_customer_cart(customer_id)

        logger.info(f"Cart item {item_id} removed from cart {item.cart_id}")
        return self._get_or_create_cart(customer_id)

    def _clear_cart(self, customer_id: str) -> ClearCartOut:
        _require_customer(customer_id)
        cart = self._get_or_create_cart(customer_id)

        try:
            removed = self.repo.delete_cart_items(cart.id)
            self.repo.touch_cart(cart.id, self._expiry())
        except GatewayError as e:
            raise SystemFailure(ErrorCode.CART_CLEAR_ERROR, "Failed to clear cart") from e
        finally:
            self.invalidate_customer_cart(customer_id)

        logger.info(f"Cart {cart.id} cleared, removed {removed} items")
        return ClearCartOut(cart_id=cart.id, removed_items=removed)

    def _validate_cart(self, customer_id: str) -> CartValidationResult:
        _require_customer(customer_id)
        cart = self._get_or_create_cart(customer_id, fresh=True)

        errors = []
        warnings = []

        for item in cart.items:
            try:
                product = self.product_lookup.get_product(item.product_id, fresh=True)
            except ProductNotFound:
                product = None
            except ProductLookupError as e:
                raise SystemFailure(
                    ErrorCode.PRODUCT_LOOKUP_ERROR,
                    f"Failed to check product {item.product_id}",
                ) from e

            if product is None or not product.is_active:
                errors.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="product_unavailable",
                        message="Product is no longer available",
                    )
                )
                continue

            if product.stock == 0:
                errors.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="out_of_stock",
                        message=f"{product.name} is out of stock",
                        current_stock=0,
                        requested_quantity=item.quantity,
                    )
                )
            elif product.stock < item.quantity:
                errors.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="insufficient_stock",
                        message=(
                            f"Insufficient stock for {product.name}. "
                            f"Available: {product.stock}, Requested: {item.quantity}"
                        ),
                        current_stock=product.stock,
                        requested_quantity=item.quantity,
                    )
                )
            elif product.stock <= LOW_STOCK_THRESHOLD:
                warnings.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="low_stock",
                        message=f"Low stock warning. Only {product.stock} items remaining",
                        current_stock=product.stock,
                        requested_quantity=item.quantity,
                    )
                )

            if product.price > item.unit_price:
                warnings.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="price_increase",
                        message=f"Price has increased from {item.unit_price} to {product.price}",
                        old_price=item.unit_price,
                        new_price=product.price,
                    )
                )
            elif product.price < item.unit_price:
                errors.append(
                    CartIssue(
                        item_id=item.id,
                        product_id=item.product_id,
                        type="price_changed",
                        message=f"Price has changed from {item.unit_price} to {product.price}",
                        old_price=item.unit_price,
                        new_price=product.price,
                    )
                )

        result = CartValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
        logger.info(
            f"Cart {cart.id} validated: valid={result.is_valid}, "
            f"errors={len(errors)}, warnings={len(warnings)}"
        )
        return result
