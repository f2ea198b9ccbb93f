# app/services/product_lookup.py
from typing import List, Protocol

from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.domain.errors import GatewayError, ProductLookupError, ProductNotFound
from app.domain.schemas import ProductSnapshot
from app.repos.product_repo import ProductRepo
from app.utils.cache import TTLCache
from app.utils.settings import PRODUCT_CACHE_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCT_LIST_KEY = "products:list"


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


class ProductLookup(Protocol):
    """
    Odczyt aktualnej ceny / stanu / aktywnosci produktu.
    ProductNotFound - produktu nie ma (nie ponawiac)
    ProductLookupError - chwilowy blad (baza, siec)
    """

    def get_product(self, product_id: str, fresh: bool = False) -> ProductSnapshot:
        ...


def to_snapshot(product: ProductModel) -> ProductSnapshot:
    return ProductSnapshot.model_validate(product)


class CatalogProductLookup:
    """Produkty czytane bezposrednio z bazy (tabela products), opcjonalnie z cache."""

    def __init__(self, db: Session, cache: TTLCache | None = None):
        self.repo = ProductRepo(db)
        self.cache = cache

    def get_product(self, product_id: str, fresh: bool = False) -> ProductSnapshot:
        key = product_key(product_id)

        if self.cache is not None and not fresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Product {product_id} served from cache")
                return cached

        try:
            product = self.repo.get_product(product_id)
        except GatewayError as e:
            raise ProductLookupError(product_id, e.message) from e

        if product is None:
            if self.cache is not None:
                self.cache.invalidate(key)
            raise ProductNotFound(product_id)

        snapshot = to_snapshot(product)
        if self.cache is not None:
            self.cache.set(key, snapshot, PRODUCT_CACHE_TTL_SECONDS)
        return snapshot

    def list_products(self, fresh: bool = False) -> List[ProductSnapshot]:
        """Aktywne produkty (listing katalogu)."""
        if self.cache is not None and not fresh:
            cached = self.cache.get(PRODUCT_LIST_KEY)
            if cached is not None:
                return list(cached)

        try:
            products = self.repo.list_products(active_only=True)
        except GatewayError as e:
            raise ProductLookupError("*", e.message) from e

        snapshots = [to_snapshot(p) for p in products]
        if self.cache is not None:
            self.cache.set(PRODUCT_LIST_KEY, snapshots, PRODUCT_CACHE_TTL_SECONDS)
        return list(snapshots)

    def invalidate(self, product_id: str | None = None) -> None:
        if self.cache is None:
            return
        if product_id:
            self.cache.invalidate(product_key(product_id))
        else:
            self.cache.invalidate_by_prefix("product")
