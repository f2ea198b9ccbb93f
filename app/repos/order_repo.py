# app/repos/order_repo.py
from decimal import Decimal
from typing import Iterable, List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.repos.base import BaseRepo
from app.utils.retry import db_retry


class OrderRepo(BaseRepo):

    def create_order(
        self,
        customer_id: str,
        shipping_address_id: str,
        total_amount: Decimal,
        delivery_fee: Decimal,
        payment_method: str,
        status: str,
        notes: str | None = None,
    ) -> OrderModel:
        order = OrderModel(
            customer_id=customer_id,
            shipping_address_id=shipping_address_id,
            total_amount=total_amount,
            delivery_fee=delivery_fee,
            payment_method=payment_method,
            status=status,
            notes=notes,
        )
        with self._gateway("create_order"):
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
        return order

    def create_order_items(
        self,
        order_id: str,
        lines: Iterable[Tuple[str, int, Decimal]],
    ) -> List[OrderItemModel]:
        """Wszystkie pozycje jednego zamowienia w jednym commit."""
        items = [
            OrderItemModel(order_id=order_id, product_id=product_id, quantity=quantity, price=price)
            for product_id, quantity, price in lines
        ]
        with self._gateway("create_order_items"):
            self.db.add_all(items)
            self.db.commit()
        return items

    @db_retry()
    def get_order(self, order_id: str) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        )
        with self._gateway("get_order"):
            return self.db.execute(stmt).scalars().first()

    def delete_order(self, order_id: str) -> bool:
        with self._gateway("delete_order"):
            order = self.db.get(OrderModel, order_id)
            if not order:
                return False
            # pozycje usuwane kaskadowo (relationship cascade)
            self.db.delete(order)
            self.db.commit()
            return True
