# app/repos/cart_repo.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update, delete
from sqlalchemy.orm import selectinload, joinedload

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.schemas import CART_STATUS_ACTIVE
from app.repos.base import BaseRepo
from app.utils.retry import db_retry


class CartRepo(BaseRepo):
    """Tabele carts i cart_items."""

    @db_retry()
    def get_active_cart(self, customer_id: str) -> CartModel | None:
        # kilka aktywnych koszykow (wyscig przy tworzeniu) - bierzemy ostatnio zmieniany
        stmt = (
            select(CartModel)
            .where(
                CartModel.customer_id == customer_id,
                CartModel.status == CART_STATUS_ACTIVE,
            )
            .options(selectinload(CartModel.items).selectinload(CartItemModel.product))
            .order_by(CartModel.updated_at.desc(), CartModel.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        with self._gateway("get_active_cart"):
            return self.db.execute(stmt).scalars().first()

    def create_cart(self, customer_id: str, expires_at: datetime) -> CartModel:
        cart = CartModel(
            customer_id=customer_id,
            status=CART_STATUS_ACTIVE,
            expires_at=expires_at,
        )
        with self._gateway("create_cart"):
            self.db.add(cart)
            self.db.commit()
            self.db.refresh(cart)
        return cart

    def touch_cart(self, cart_id: str, expires_at: datetime) -> int:
        stmt = (
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(updated_at=datetime.now(timezone.utc), expires_at=expires_at)
        )
        with self._gateway("touch_cart"):
            res = self.db.execute(stmt)
            self.db.commit()
            return res.rowcount

    @db_retry()
    def get_cart_item(self, cart_id: str, product_id: str) -> CartItemModel | None:
        stmt = (
            select(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
            .execution_options(populate_existing=True)
        )
        with self._gateway("get_cart_item"):
            return self.db.execute(stmt).scalars().first()

    @db_retry()
    def get_cart_item_with_cart(self, item_id: str) -> CartItemModel | None:
        """Pozycja razem z koszykiem (wlasciciel) i produktem."""
        stmt = (
            select(CartItemModel)
            .where(CartItemModel.id == item_id)
            .options(joinedload(CartItemModel.cart), joinedload(CartItemModel.product))
            .execution_options(populate_existing=True)
        )
        with self._gateway("get_cart_item_with_cart"):
            return self.db.execute(stmt).scalars().first()

    def add_cart_item(self, cart_id: str, product_id: str, quantity: int, price: Decimal) -> CartItemModel:
        item = CartItemModel(
            cart_id=cart_id,
            product_id=product_id,
            quantity=quantity,
            price=price,
        )
        with self._gateway("add_cart_item"):
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)
        return item

    def update_cart_item_quantity(self, item_id: str, quantity: int) -> int:
        stmt = (
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(quantity=quantity, updated_at=datetime.now(timezone.utc))
        )
        with self._gateway("update_cart_item_quantity"):
            res = self.db.execute(stmt)
            self.db.commit()
            return res.rowcount

    def delete_cart_item(self, item_id: str) -> int:
        stmt = delete(CartItemModel).where(CartItemModel.id == item_id)
        with self._gateway("delete_cart_item"):
            res = self.db.execute(stmt)
            self.db.commit()
            return res.rowcount

    def delete_cart_items(self, cart_id: str) -> int:
        stmt = delete(CartItemModel).where(CartItemModel.cart_id == cart_id)
        with self._gateway("delete_cart_items"):
            res = self.db.execute(stmt)
            self.db.commit()
            return res.rowcount

    def delete_customer_cart_items(self, customer_id: str) -> int:
        """Usuwa pozycje ze wszystkich koszykow klienta (po zlozeniu zamowienia)."""
        cart_ids = select(CartModel.id).where(CartModel.customer_id == customer_id)
        stmt = (
            delete(CartItemModel)
            .where(CartItemModel.cart_id.in_(cart_ids))
            .execution_options(synchronize_session="fetch")
        )
        with self._gateway("delete_customer_cart_items"):
            res = self.db.execute(stmt)
            self.db.commit()
            return res.rowcount
