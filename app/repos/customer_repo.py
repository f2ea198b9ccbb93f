# app/repos/customer_repo.py
from sqlalchemy import select

from app.data.models.customer import CustomerModel, AddressModel
from app.repos.base import BaseRepo
from app.utils.retry import db_retry


class CustomerRepo(BaseRepo):

    @db_retry()
    def get_customer(self, customer_id: str) -> CustomerModel | None:
        with self._gateway("get_customer"):
            return self.db.get(CustomerModel, customer_id)

    @db_retry()
    def get_latest_address(self, customer_id: str) -> AddressModel | None:
        stmt = (
            select(AddressModel)
            .where(AddressModel.customer_id == customer_id)
            .order_by(AddressModel.created_at.desc(), AddressModel.id.desc())
            .limit(1)
        )
        with self._gateway("get_latest_address"):
            return self.db.execute(stmt).scalars().first()
