# app/repos/base.py
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import GatewayError
from app.utils.logging import get_logger

logger = get_logger(__name__)


class BaseRepo:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _gateway(self, operation: str):
        """Zamienia bledy SQLAlchemy na GatewayError i cofa sesje."""
        try:
            yield
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Transient database error in {operation}: {e}")
            raise GatewayError(operation, str(e), transient=True) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise GatewayError(operation, str(e)) from e

    def commit(self) -> None:
        with self._gateway("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
