#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from app.data.models.product import ProductModel
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.data.models.customer import CustomerModel, AddressModel
from app.data.models.store_settings import StoreSettingsModel

__all__ = [
    "ProductModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "CustomerModel",
    "AddressModel",
    "StoreSettingsModel",
]
