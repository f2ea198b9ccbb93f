from decimal import Decimal

import pytest

from app.domain.errors import ErrorCode
from app.domain.schemas import AddToCartIn, ProductSnapshot, UpdateCartItemIn
from app.services.cart_service import CartService
from app.services.product_lookup import CatalogProductLookup

from conftest import FakeProductLookup

CUSTOMER = "cust-1"


def _add(svc, product_id="1", quantity=1, customer_id=CUSTOMER):
    return svc.add_item(customer_id, AddToCartIn(product_id=product_id, quantity=quantity))


def _fresh_cart(svc, customer_id=CUSTOMER):
    result = svc.get_or_create_cart(customer_id, fresh=True)
    assert result.success
    return result.data


def _count_calls(monkeypatch, obj, name):
    calls = []
    original = getattr(obj, name)

    def wrapper(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(obj, name, wrapper)
    return calls


# =====================================================
# GET OR CREATE
# =====================================================
def test_get_or_create_cart_creates_empty_cart(cart_service):
    result = cart_service.get_or_create_cart(CUSTOMER)

    assert result.success
    assert result.error is None
    cart = result.data
    assert cart.customer_id == CUSTOMER
    assert cart.status == "active"
    assert cart.items == []
    assert cart.total_amount == Decimal("0")
    assert cart.total_items == 0
    assert cart.expires_at is not None


def test_get_or_create_cart_returns_same_cart(cart_service):
    first = cart_service.get_or_create_cart(CUSTOMER).data
    second = cart_service.get_or_create_cart(CUSTOMER, fresh=True).data

    assert first.id == second.id


def test_second_read_is_served_from_cache(cart_service, monkeypatch):
    _add(cart_service, "1", 2)
    cart_service.clear_cache()
    calls = _count_calls(monkeypatch, cart_service.repo, "get_active_cart")

    first = cart_service.get_or_create_cart(CUSTOMER).data
    second = cart_service.get_or_create_cart(CUSTOMER).data

    assert len(calls) == 1
    assert first.total_amount == second.total_amount == Decimal("200")
    assert first.total_items == second.total_items == 2


def test_cached_cart_expires(cart_service, clock, monkeypatch):
    cart_service.get_or_create_cart(CUSTOMER)
    calls = _count_calls(monkeypatch, cart_service.repo, "get_active_cart")

    clock.advance(121)
    cart_service.get_or_create_cart(CUSTOMER)

    assert len(calls) == 1


def test_cached_cart_cannot_be_mutated_by_caller(cart_service):
    cart = cart_service.get_or_create_cart(CUSTOMER).data
    cart.items.append("garbage")

    again = cart_service.get_or_create_cart(CUSTOMER).data
    assert again.items == []


def test_missing_customer_id_is_rejected(cart_service):
    result = cart_service.get_or_create_cart("")

    assert not result.success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details == {"field": "customer_id"}


def test_newest_cart_wins_when_customer_has_several(cart_service):
    from datetime import datetime, timedelta, timezone

    older = cart_service.repo.create_cart(CUSTOMER, datetime.now(timezone.utc) + timedelta(days=7))
    newer = cart_service.repo.create_cart(CUSTOMER, datetime.now(timezone.utc) + timedelta(days=7))
    cart_service.repo.touch_cart(newer.id, datetime.now(timezone.utc) + timedelta(days=7))

    cart = cart_service.get_or_create_cart(CUSTOMER, fresh=True).data

    assert cart.id == newer.id
    assert cart.id != older.id


# =====================================================
# ADD
# =====================================================
def test_add_item_creates_line_with_captured_price(cart_service):
    result = _add(cart_service, "1", 2)

    assert result.success
    cart = result.data
    assert len(cart.items) == 1
    item = cart.items[0]
    assert item.product_id == "1"
    assert item.quantity == 2
    assert item.unit_price == Decimal("100")
    assert item.total_price == Decimal("200")
    assert item.product.name == "Keyboard"
    assert cart.total_amount == Decimal("200")


@pytest.mark.parametrize("q1,q2", [(1, 1), (2, 3), (4, 6)])
def test_adding_same_product_twice_merges_quantities(cart_service, q1, q2):
    _add(cart_service, "1", q1)
    result = _add(cart_service, "1", q2)

    assert result.success
    items = result.data.items
    assert len(items) == 1
    assert items[0].quantity == q1 + q2
    assert result.data.total_items == q1 + q2


def test_add_more_than_stock_fails_without_write(cart_service, monkeypatch):
    writes = _count_calls(monkeypatch, cart_service.repo, "add_cart_item")

    result = _add(cart_service, "2", 10)

    assert not result.success
    assert result.error.code == ErrorCode.INSUFFICIENT_STOCK
    assert "Mouse" in result.error.message
    assert "Available: 5" in result.error.message
    assert writes == []
    assert _fresh_cart(cart_service).items == []


def test_repeat_add_checks_total_against_stock(cart_service):
    _add(cart_service, "1", 6)
    result = _add(cart_service, "1", 5)

    assert not result.success
    assert result.error.code == ErrorCode.INSUFFICIENT_STOCK
    assert "Total requested: 11" in result.error.message
    assert _fresh_cart(cart_service).items[0].quantity == 6


def test_repeat_add_cannot_exceed_max_quantity(cart_service, products, db_session):
    products["1"].stock = 500
    db_session.commit()

    _add(cart_service, "1", 60)
    result = _add(cart_service, "1", 50)

    assert not result.success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "Quantity cannot exceed 100"


@pytest.mark.parametrize("quantity,message", [
    (0, "Quantity must be greater than 0"),
    (-3, "Quantity must be greater than 0"),
    (101, "Quantity cannot exceed 100"),
])
def test_add_rejects_quantity_out_of_bounds(cart_service, quantity, message):
    result = _add(cart_service, "1", quantity)

    assert not result.success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == message


def test_add_unknown_product(cart_service):
    result = _add(cart_service, "nope", 1)

    assert not result.success
    assert result.error.code == ErrorCode.PRODUCT_NOT_FOUND


def test_add_inactive_product_is_not_found(cart_service):
    result = _add(cart_service, "3", 1)

    assert not result.success
    assert result.error.code == ErrorCode.PRODUCT_NOT_FOUND


def test_add_when_catalog_is_down(db_session, cache, products):
    lookup = FakeProductLookup()
    lookup.failing.add("1")
    svc = CartService(db=db_session, product_lookup=lookup, cache=cache)

    result = _add(svc, "1", 1)

    assert not result.success
    assert result.error.code == ErrorCode.PRODUCT_LOOKUP_ERROR


def test_add_keeps_price_captured_on_first_add(cart_service, products, db_session):
    _add(cart_service, "1", 1)
    products["1"].price = Decimal("120.00")
    db_session.commit()

    result = _add(cart_service, "1", 1)

    item = result.data.items[0]
    assert item.quantity == 2
    assert item.unit_price == Decimal("100")


def test_add_invalidates_cached_cart(cart_service):
    assert cart_service.get_or_create_cart(CUSTOMER).data.items == []

    _add(cart_service, "2", 1)

    cart = cart_service.get_or_create_cart(CUSTOMER).data
    assert [i.product_id for i in cart.items] == ["2"]


def test_failed_write_still_invalidates_cache(cart_service, monkeypatch):
    from app.domain.errors import GatewayError

    cart_service.get_or_create_cart(CUSTOMER)
    assert cart_service.get_cache_stats()["size"] == 1

    def broken(*args, **kwargs):
        raise GatewayError("add_cart_item", "disk full")

    monkeypatch.setattr(cart_service.repo, "add_cart_item", broken)
    result = _add(cart_service, "1", 1)

    assert not result.success
    assert result.error.code == ErrorCode.CART_ITEM_ADD_ERROR
    assert cart_service.get_cache_stats()["size"] == 0


# =====================================================
# UPDATE / REMOVE
# =====================================================
def test_update_item_sets_quantity(cart_service):
    item = _add(cart_service, "1", 2).data.items[0]

    result = cart_service.update_item(CUSTOMER, UpdateCartItemIn(item_id=item.id, quantity=7))

    assert result.success
    assert result.data.items[0].quantity == 7
    assert result.data.total_amount == Decimal("700")


def test_update_item_to_zero_is_rejected(cart_service):
    item = _add(cart_service, "1", 2).data.items[0]

    result = cart_service.update_item(CUSTOMER, UpdateCartItemIn(item_id=item.id, quantity=0))

    assert not result.success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message == "Quantity must be greater than 0"
    assert _fresh_cart(cart_service).items[0].quantity == 2


def test_update_item_above_stock(cart_service):
    item = _add(cart_service, "2", 1).data.items[0]

    result = cart_service.update_item(CUSTOMER, UpdateCartItemIn(item_id=item.id, quantity=6))

    assert not result.success
    assert result.error.code == ErrorCode.INSUFFICIENT_STOCK
    assert "Mouse" in result.error.message


def test_update_unknown_item(cart_service):
    result = cart_service.update_item(CUSTOMER, UpdateCartItemIn(item_id="missing", quantity=1))

    assert not result.success
    assert result.error.code == ErrorCode.CART_ITEM_NOT_FOUND


def test_update_item_of_other_customer(cart_service):
    item = _add(cart_service, "1", 1, customer_id="someone-else").data.items[0]

    result = cart_service.update_item(CUSTOMER, UpdateCartItemIn(item_id=item.id, quantity=3))

    assert not result.success
    assert result.error.code == ErrorCode.UNAUTHORIZED_CART_ACCESS


def test_remove_item(cart_service):
    _add(cart_service, "1", 1)
    item = _add(cart_service, "2", 1).data.items[1]

    result = cart_service.remove_item(CUSTOMER, item.id)

    assert result.success
    assert [i.product_id for i in result.data.items] == ["1"]


def test_remove_item_of_other_customer(cart_service):
    item = _add(cart_service, "1", 1, customer_id="someone-else").data.items[0]

    result = cart_service.remove_item(CUSTOMER, item.id)

    assert not result.success
    assert result.error.code == ErrorCode.UNAUTHORIZED_CART_ACCESS
    assert len(_fresh_cart(cart_service, "someone-else").items) == 1


def test_remove_unknown_item(cart_service):
    result = cart_service.remove_item(CUSTOMER, "missing")

    assert not result.success
    assert result.error.code == ErrorCode.CART_ITEM_NOT_FOUND


# =====================================================
# CLEAR
# =====================================================
def test_clear_cart_is_idempotent(cart_service):
    _add(cart_service, "1", 1)
    _add(cart_service, "2", 2)

    first = cart_service.clear_cart(CUSTOMER)
    second = cart_service.clear_cart(CUSTOMER)

    assert first.success and second.success
    assert first.data.removed_items == 2
    assert second.data.removed_items == 0
    assert first.data.cart_id == second.data.cart_id
    assert _fresh_cart(cart_service).items == []


def test_clear_cache_by_key(cart_service):
    cart_service.get_or_create_cart(CUSTOMER)
    cart_service.get_or_create_cart("cust-2")

    cart_service.clear_cache(f"cart:{CUSTOMER}:get_or_create_cart")

    assert cart_service.get_cache_stats()["keys"] == ["cart:cust-2:get_or_create_cart"]


def test_invalidation_does_not_touch_customer_with_colon_in_id(cart_service):
    cart_service.get_or_create_cart("a")
    cart_service.get_or_create_cart("a:b")

    removed = cart_service.invalidate_customer_cart("a")

    assert removed == 1
    assert cart_service.get_cache_stats()["size"] == 1


# =====================================================
# GATEWAY FAILURES
# =====================================================
def _broken(operation):
    from app.domain.errors import GatewayError

    def raiser(*args, **kwargs):
        raise GatewayError(operation, "connection lost")

    return raiser


def test_cart_read_failure_is_cart_fetch_error(cart_service, monkeypatch):
    monkeypatch.setattr(cart_service.repo, "get_active_cart", _broken("get_active_cart"))

    result = cart_service.get_or_create_cart(CUSTOMER)

    assert not result.success
    assert result.error.code == ErrorCode.CART_FETCH_ERROR
    assert cart_service.get_cache_stats()["size"] == 0


def test_clear_failure_is_cart_clear_error(cart_service, monkeypatch):
    _add(cart_service, "1", 1)
    cart_service.get_or_create_cart(CUSTOMER)
    assert cart_service.get_cache_stats()["size"] == 1

    monkeypatch.setattr(cart_service.repo, "delete_cart_items", _broken("delete_cart_items"))
    result = cart_service.clear_cart(CUSTOMER)

    assert not result.success
    assert result.error.code == ErrorCode.CART_CLEAR_ERROR
    assert cart_service.get_cache_stats()["size"] == 0


# =====================================================
# VALIDATE
# =====================================================
def test_validate_cart_out_of_stock(cart_service, products, db_session):
    _add(cart_service, "1", 2)
    products["1"].stock = 0
    db_session.commit()

    result = cart_service.validate_cart(CUSTOMER)

    assert result.success
    validation = result.data
    assert validation.is_valid is False
    assert [e.type for e in validation.errors] == ["out_of_stock"]


def test_validate_cart_price_increase_is_warning(cart_service, products, db_session):
    _add(cart_service, "1", 2)
    products["1"].stock = 3
    products["1"].price = Decimal("120.00")
    db_session.commit()

    validation = cart_service.validate_cart(CUSTOMER).data

    assert validation.is_valid is True
    assert validation.errors == []
    increases = [w for w in validation.warnings if w.type == "price_increase"]
    assert len(increases) == 1
    assert increases[0].old_price == Decimal("100")
    assert increases[0].new_price == Decimal("120")
    # stan 3 <= prog niskiego stanu
    assert "low_stock" in [w.type for w in validation.warnings]


def test_validate_cart_price_decrease_is_error(cart_service, products, db_session):
    _add(cart_service, "1", 1)
    products["1"].price = Decimal("80.00")
    db_session.commit()

    validation = cart_service.validate_cart(CUSTOMER).data

    assert validation.is_valid is False
    assert [e.type for e in validation.errors] == ["price_changed"]


def test_validate_cart_insufficient_stock(cart_service, products, db_session):
    _add(cart_service, "1", 4)
    products["1"].stock = 2
    db_session.commit()

    validation = cart_service.validate_cart(CUSTOMER).data

    assert validation.is_valid is False
    error = validation.errors[0]
    assert error.type == "insufficient_stock"
    assert error.current_stock == 2
    assert error.requested_quantity == 4


def test_validate_cart_deactivated_product(cart_service, products, db_session):
    _add(cart_service, "2", 1)
    products["2"].is_active = False
    db_session.commit()

    validation = cart_service.validate_cart(CUSTOMER).data

    assert validation.is_valid is False
    assert [e.type for e in validation.errors] == ["product_unavailable"]


def test_validate_empty_cart_is_valid(cart_service):
    validation = cart_service.validate_cart(CUSTOMER).data

    assert validation.is_valid is True
    assert validation.errors == []
    assert validation.warnings == []


# =====================================================
# KNOWN RACE WINDOW
# stan magazynu nie jest rezerwowany ani blokowany
# =====================================================
def test_stock_is_not_reserved_between_customers(cart_service):
    first = _add(cart_service, "1", 10, customer_id="cust-a")
    second = _add(cart_service, "1", 10, customer_id="cust-b")

    # oba przechodza, lacznie 20 sztuk przy stanie 10
    assert first.success
    assert second.success


def test_stale_stock_read_lets_add_overshoot(db_session, cache, products):
    products["1"].stock = 3
    db_session.commit()

    # odczyt sprzed zmiany stanu, jak u rownoleglego requestu
    stale = FakeProductLookup([
        ProductSnapshot(id="1", name="Keyboard", price=Decimal("100.00"), stock=10, is_active=True),
    ])
    racing = CartService(db=db_session, product_lookup=stale, cache=cache)

    assert _add(racing, "1", 8).success

    checker = CartService(db=db_session, product_lookup=CatalogProductLookup(db_session), cache=cache)
    validation = checker.validate_cart(CUSTOMER).data
    assert validation.is_valid is False
    assert validation.errors[0].type == "insufficient_stock"
