# app/api/__init__.py
from app.api.routers import carts, health, orders, products

__all__ = ["carts", "health", "orders", "products"]
