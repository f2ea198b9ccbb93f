# app/services/product_client.py
import requests
from requests import RequestException

from app.domain.errors import ProductLookupError, ProductNotFound
from app.domain.schemas import ProductSnapshot
from app.utils.retry import http_retry
from app.utils.settings import PRODUCT_SERVICE_URL, PRODUCT_SERVICE_TIMEOUT
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """ProductLookup przez HTTP do product-service (bez cache, zawsze swiezy odczyt)."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout or PRODUCT_SERVICE_TIMEOUT

    @http_retry()
    def fetch_product(self, product_id: str) -> dict | None:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def get_product(self, product_id: str, fresh: bool = False) -> ProductSnapshot:
        try:
            pdata = self.fetch_product(product_id)
        except RequestException as e:
            logger.error(f"Product service unavailable for product {product_id}: {e}")
            raise ProductLookupError(product_id, str(e)) from e

        if pdata is None:
            raise ProductNotFound(product_id)

        return ProductSnapshot.model_validate(pdata)
