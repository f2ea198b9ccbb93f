# app/main.py
from fastapi import FastAPI
import uvicorn

from app.data.database import Base, init_db
from app.api.routers import carts, orders, products, health
from app.utils.cache import TTLCache
from app.utils.settings import CART_CACHE_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        init_db()
        logger.info(f"Database ready, tables: {sorted(Base.metadata.tables.keys())}")

    app = FastAPI(
        title="Cart Service",
        version="1.0.0",
    )

    # jeden cache na proces, wspolny dla wszystkich requestow
    app.state.cache = TTLCache(default_ttl=CART_CACHE_TTL_SECONDS)

    # Include routers
    app.include_router(health.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
