# app/data/seed.py
from datetime import datetime, timezone
from decimal import Decimal

from app.data.database import SessionLocal, init_db
from app.data.models import AddressModel, CustomerModel, ProductModel, StoreSettingsModel
from app.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    {"id": "1", "name": "Keyboard", "price": Decimal("199.99"), "stock": 25},
    {"id": "2", "name": "Mouse", "price": Decimal("49.50"), "stock": 40},
    {"id": "3", "name": "Monitor", "price": Decimal("899.00"), "stock": 4},
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return

        db.add_all(ProductModel(**p) for p in PRODUCTS)

        db.add(CustomerModel(id="demo-customer", first_name="Jan", last_name="Kowalski", email="jan@example.com"))
        db.add(
            AddressModel(
                customer_id="demo-customer",
                address_line_1="ul. Dluga 1",
                city="Warszawa",
                postal_code="00-001",
                country="PL",
                phone_number="+48 600 000 000",
            )
        )
        db.add(StoreSettingsModel(delivery_fee=Decimal("15.00"), updated_at=datetime.now(timezone.utc)))
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products and demo customer")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
