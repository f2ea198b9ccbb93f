# app/repos/store_settings_repo.py
from decimal import Decimal

from sqlalchemy import select

from app.data.models.store_settings import StoreSettingsModel
from app.repos.base import BaseRepo
from app.utils.retry import db_retry


class StoreSettingsRepo(BaseRepo):

    @db_retry()
    def get_delivery_fee(self) -> Decimal | None:
        stmt = (
            select(StoreSettingsModel.delivery_fee)
            .order_by(StoreSettingsModel.updated_at.desc(), StoreSettingsModel.id.desc())
            .limit(1)
        )
        with self._gateway("get_delivery_fee"):
            return self.db.execute(stmt).scalars().first()
