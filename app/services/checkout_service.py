# app/services/checkout_service.py
from decimal import Decimal
from typing import List

from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.domain.errors import (
    BusinessRuleError,
    ErrorCode,
    GatewayError,
    NotFoundError,
    ProductLookupError,
    ProductNotFound,
    ServiceError,
    SystemFailure,
)
from app.domain.schemas import (
    ORDER_STATUS_PENDING_CONFIRMATION,
    AddressOut,
    CheckoutLine,
    CreateOrderIn,
    CustomerCheckoutDetails,
    OrderCreationResult,
    OrderDeletionResult,
    OrderItemOut,
    OrderOut,
    PaymentMethod,
    ServiceResult,
)
from app.repos.cart_repo import CartRepo
from app.repos.customer_repo import CustomerRepo
from app.repos.order_repo import OrderRepo
from app.repos.store_settings_repo import StoreSettingsRepo
from app.services.cart_service import CartService
from app.services.notification_service import NotificationService
from app.utils.settings import DEFAULT_DELIVERY_FEE, MAX_ITEM_QUANTITY
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Zamiana koszyka na zamowienie.

    Zamowienie i jego pozycje to dwa osobne zapisy (brak wspolnej transakcji):
    no-order -> order row -> items (sukces)
    order row -> blad pozycji -> delete order (kompensacja) -> no-order
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService,
        notifier: NotificationService | None = None,
    ):
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.customer_repo = CustomerRepo(db)
        self.settings_repo = StoreSettingsRepo(db)
        self.cart_service = cart_service
        self.notifier = notifier or NotificationService()

    # =====================================================
    # ORDERS
    # =====================================================
    def create_order(self, data: CreateOrderIn) -> OrderCreationResult:
        """
        Tworzy zamowienie i jego pozycje, po sukcesie czysci koszyk klienta.

        Jesli zapis pozycji sie nie uda, utworzone zamowienie jest usuwane
        i zwracany jest blad bez order_id.
        """
        problem = self._check_order_input(data)
        if problem:
            logger.warning(f"Order for customer {data.customer_id} rejected: {problem}")
            return OrderCreationResult(order_id=None, error=problem, code=ErrorCode.VALIDATION_ERROR)

        try:
            self._check_order_products(data.items)
        except ServiceError as e:
            logger.warning(f"Order for customer {data.customer_id} rejected: [{e.code}] {e.message}")
            return OrderCreationResult(order_id=None, error=e.message, code=e.code)

        total = data.total_amount + data.delivery_fee

        try:
            order = self.repo.create_order(
                customer_id=data.customer_id,
                shipping_address_id=data.shipping_address_id,
                total_amount=total,
                delivery_fee=data.delivery_fee,
                payment_method=data.payment_method.value,
                status=ORDER_STATUS_PENDING_CONFIRMATION,
                notes=data.notes,
            )
        except GatewayError as e:
            logger.error(f"Failed to create order for customer {data.customer_id}: {e}")
            return OrderCreationResult(
                order_id=None, error="Failed to create order.", code=ErrorCode.ORDER_CREATE_ERROR
            )

        try:
            self.repo.create_order_items(
                order.id,
                [(line.product.id, line.quantity, line.price) for line in data.items],
            )
        except GatewayError as e:
            logger.error(f"Failed to create items of order {order.id}, rolling back: {e}")
            self._rollback_order(order.id)
            return OrderCreationResult(
                order_id=None, error="Failed to create order items.", code=ErrorCode.ORDER_CREATE_ERROR
            )
        except Exception as e:
            # zamowienie bez pozycji nie moze zostac w bazie
            logger.error(f"Unexpected error creating items of order {order.id}, rolling back: {e!r}")
            self._rollback_order(order.id)
            raise

        logger.info(
            f"Order {order.id} created for customer {data.customer_id}, "
            f"total {total}, {len(data.items)} items"
        )

        self._clear_customer_cart(data.customer_id)
        self._notify(data.customer_id, order.id, total)

        return OrderCreationResult(order_id=order.id, error=None)

    def delete_order(self, order_id: str) -> OrderDeletionResult:
        """Twarde usuniecie zamowienia (anulowanie i kompensacja)."""
        try:
            deleted = self.repo.delete_order(order_id)
        except GatewayError as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            return OrderDeletionResult(success=False, error=f"Failed to delete order: {e.message}")

        if not deleted:
            logger.warning(f"Order {order_id} not found for deletion")
            return OrderDeletionResult(success=False, error="Failed to delete order: Order not found")

        logger.info(f"Order {order_id} deleted")
        return OrderDeletionResult(success=True, error=None)

    def get_order(self, order_id: str) -> ServiceResult:
        try:
            order = self.repo.get_order(order_id)
        except GatewayError as e:
            logger.error(f"Failed to fetch order {order_id}: {e}")
            return ServiceResult.fail(ErrorCode.ORDER_FETCH_ERROR, "Failed to fetch order")

        if order is None:
            return ServiceResult.fail(ErrorCode.ORDER_NOT_FOUND, "Order not found")

        return ServiceResult.ok(self._to_order_out(order))

    # =====================================================
    # CUSTOMER
    # =====================================================
    def get_customer_details_for_checkout(self, customer_id: str | None = None) -> CustomerCheckoutDetails:
        """
        Dane klienta i jego najnowszy adres do formularza checkout.
        Brak adresu to nie blad (address=None).
        """
        if not customer_id:
            return CustomerCheckoutDetails(error="User not authenticated")

        try:
            customer = self.customer_repo.get_customer(customer_id)
        except GatewayError as e:
            logger.error(f"Error fetching customer details for {customer_id}: {e}")
            return CustomerCheckoutDetails(error="Failed to fetch customer details")

        if customer is None:
            logger.warning(f"Customer {customer_id} not found")
            return CustomerCheckoutDetails(error="Failed to fetch customer details: customer not found")

        try:
            address = self.customer_repo.get_latest_address(customer_id)
        except GatewayError as e:
            logger.error(f"Error fetching customer address for {customer_id}: {e}")
            return CustomerCheckoutDetails(error="Failed to fetch customer address")

        return CustomerCheckoutDetails(
            customer_id=customer.id,
            first_name=customer.first_name,
            last_name=customer.last_name,
            address=AddressOut.model_validate(address) if address else None,
            error=None,
        )

    # =====================================================
    # CHECKOUT (koszyk -> zamowienie)
    # =====================================================
    def checkout(
        self,
        customer_id: str,
        payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY,
        notes: str | None = None,
    ) -> ServiceResult:
        try:
            order_data = self._build_order_from_cart(customer_id, payment_method, notes)
        except SystemFailure as e:
            logger.error(f"Checkout failed for customer {customer_id}: [{e.code}] {e.message}")
            return ServiceResult.fail(e.code, e.message, e.details)
        except ServiceError as e:
            logger.warning(f"Checkout rejected for customer {customer_id}: [{e.code}] {e.message}")
            return ServiceResult.fail(e.code, e.message, e.details)

        created = self.create_order(order_data)
        if created.error:
            return ServiceResult.fail(created.code or ErrorCode.ORDER_CREATE_ERROR, created.error)

        return self.get_order(created.order_id)

    def _build_order_from_cart(
        self,
        customer_id: str,
        payment_method: PaymentMethod,
        notes: str | None,
    ) -> CreateOrderIn:
        cart_result = self.cart_service.get_or_create_cart(customer_id, fresh=True)
        if not cart_result.success:
            err = cart_result.error
            raise ServiceError(err.code, err.message, err.details)

        cart = cart_result.data
        if not cart.items:
            raise BusinessRuleError(ErrorCode.CART_EMPTY, "Cart is empty")

        validation_result = self.cart_service.validate_cart(customer_id)
        if not validation_result.success:
            err = validation_result.error
            raise ServiceError(err.code, err.message, err.details)

        validation = validation_result.data
        if not validation.is_valid:
            raise BusinessRuleError(
                ErrorCode.CART_INVALID,
                "Cart validation failed",
                [e.model_dump(mode="json") for e in validation.errors],
            )

        try:
            address = self.customer_repo.get_latest_address(customer_id)
        except GatewayError as e:
            raise SystemFailure(ErrorCode.GATEWAY_ERROR, "Failed to fetch delivery address") from e

        if not address or not address.address_line_1 or not address.city or not address.phone_number:
            raise BusinessRuleError(
                ErrorCode.ADDRESS_REQUIRED,
                "Please complete delivery details: address, city, phone number",
            )

        delivery_fee = self._delivery_fee()

        # cena z aktualnego snapshotu produktu, nie cena z chwili dodania do koszyka
        lines: List[CheckoutLine] = []
        for item in cart.items:
            if item.product is None:
                raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, f"Product {item.product_id} not found")
            lines.append(CheckoutLine(id=item.id, quantity=item.quantity, product=item.product))

        return CreateOrderIn(
            customer_id=customer_id,
            shipping_address_id=address.id,
            items=lines,
            total_amount=sum((line.price * line.quantity for line in lines), Decimal("0")),
            delivery_fee=delivery_fee,
            payment_method=payment_method,
            notes=notes,
        )

    # =====================================================
    # HELPERS
    # =====================================================
    @staticmethod
    def _check_order_input(data: CreateOrderIn) -> str | None:
        if not data.customer_id:
            return "Customer ID is required."
        if not data.shipping_address_id:
            return "Shipping address is required."
        if not data.items:
            return "Order must contain at least one item."
        if data.delivery_fee < 0:
            return "Delivery fee cannot be negative."

        subtotal = Decimal("0")
        for line in data.items:
            if line.quantity <= 0:
                return "Quantity must be greater than 0."
            if line.quantity > MAX_ITEM_QUANTITY:
                return f"Quantity cannot exceed {MAX_ITEM_QUANTITY}."
            if line.price <= 0:
                return "Unit price must be greater than 0."
            subtotal += line.price * line.quantity

        # suma pozycji musi sie zgadzac z total_amount
        if subtotal != data.total_amount:
            return "Order total does not match order items."
        return None

    def _check_order_products(self, lines: List[CheckoutLine]) -> None:
        """Kazdy produkt czytany swiezo z katalogu: musi istniec, byc aktywny i miec stan."""
        lookup = self.cart_service.product_lookup
        for line in lines:
            product_id = line.product.id
            try:
                product = lookup.get_product(product_id, fresh=True)
            except ProductNotFound as e:
                raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, f"Product {product_id} not found") from e
            except ProductLookupError as e:
                raise SystemFailure(ErrorCode.PRODUCT_LOOKUP_ERROR, f"Failed to check product {product_id}") from e

            if not product.is_active:
                raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, f"Product {product_id} not found")

            if product.stock < line.quantity:
                raise BusinessRuleError(
                    ErrorCode.INSUFFICIENT_STOCK,
                    f"Insufficient stock for product {product.name}. "
                    f"Available: {product.stock}, Requested: {line.quantity}",
                    {"product_id": product_id, "current_stock": product.stock, "requested_quantity": line.quantity},
                )

    def _rollback_order(self, order_id: str) -> None:
        result = self.delete_order(order_id)
        if not result.success:
            logger.error(f"Compensating delete of order {order_id} failed: {result.error}")

    def _clear_customer_cart(self, customer_id: str) -> None:
        try:
            removed = self.cart_repo.delete_customer_cart_items(customer_id)
            logger.info(f"Removed {removed} cart items of customer {customer_id} after checkout")
        except GatewayError as e:
            logger.warning(f"Failed to clear cart of customer {customer_id} after checkout: {e}")
        finally:
            self.cart_service.invalidate_customer_cart(customer_id)

    def _notify(self, customer_id: str, order_id: str, total: Decimal) -> None:
        try:
            self.notifier.send_order_notification(customer_id, order_id, total)
        except BrokerError as e:
            # zamowienie juz istnieje, powiadomienie jest best-effort
            logger.warning(f"Order {order_id} notification not sent: {e}")

    def _delivery_fee(self) -> Decimal:
        try:
            fee = self.settings_repo.get_delivery_fee()
        except GatewayError as e:
            logger.warning(f"Failed to read store settings, using default delivery fee: {e}")
            fee = None
        return Decimal(fee) if fee is not None else DEFAULT_DELIVERY_FEE

    @staticmethod
    def _to_order_out(order: OrderModel) -> OrderOut:
        items = [
            OrderItemOut(
                id=i.id,
                product_id=i.product_id,
                quantity=i.quantity,
                price=Decimal(i.price),
                total_price=Decimal(i.price) * i.quantity,
            )
            for i in order.items
        ]
        subtotal = sum((i.total_price for i in items), Decimal("0.00"))

        return OrderOut(
            id=order.id,
            customer_id=order.customer_id,
            shipping_address_id=order.shipping_address_id,
            status=order.status,
            items=items,
            subtotal=subtotal,
            delivery_fee=Decimal(order.delivery_fee),
            total_amount=Decimal(order.total_amount),
            payment_method=order.payment_method,
            notes=order.notes,
            created_at=order.created_at,
        )
