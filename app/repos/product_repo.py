# app/repos/product_repo.py
from typing import List

from sqlalchemy import select

from app.data.models.product import ProductModel
from app.repos.base import BaseRepo
from app.utils.retry import db_retry


class ProductRepo(BaseRepo):
    """Odczyt katalogu - koszyk i zamowienia nigdy nie modyfikuja produktow."""

    @db_retry()
    def get_product(self, product_id: str) -> ProductModel | None:
        with self._gateway("get_product"):
            return self.db.get(ProductModel, product_id, populate_existing=True)

    @db_retry()
    def list_products(self, active_only: bool = True) -> List[ProductModel]:
        stmt = select(ProductModel).order_by(ProductModel.name)
        if active_only:
            stmt = stmt.where(ProductModel.is_active.is_(True))
        with self._gateway("list_products"):
            return list(self.db.execute(stmt).scalars().all())
