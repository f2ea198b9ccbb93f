import os

# srodowisko testowe ustawiane przed importem app (settings czytane przy imporcie)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["PRODUCT_LOOKUP_BACKEND"] = "db"

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.data.database import Base, init_db
from app.data.models import AddressModel, CustomerModel, ProductModel, StoreSettingsModel
from app.domain.errors import ProductLookupError, ProductNotFound
from app.domain.schemas import ProductSnapshot
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.product_lookup import CatalogProductLookup
from app.utils.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProductLookup:
    """ProductLookup z recznie ustawianymi snapshotami."""

    def __init__(self, products=None):
        self.products = {p.id: p for p in (products or [])}
        self.failing = set()
        self.calls = []

    def put(self, product: ProductSnapshot) -> None:
        self.products[product.id] = product

    def get_product(self, product_id: str, fresh: bool = False) -> ProductSnapshot:
        self.calls.append((product_id, fresh))
        if product_id in self.failing:
            raise ProductLookupError(product_id, "catalog unavailable")
        if product_id not in self.products:
            raise ProductNotFound(product_id)
        return self.products[product_id].model_copy()


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_notification(self, customer_id, order_id, total):
        self.sent.append((customer_id, order_id, total))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    SessionTest = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SessionTest()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def products(db_session):
    rows = [
        ProductModel(id="1", name="Keyboard", price=Decimal("100.00"), stock=10, is_active=True),
        ProductModel(id="2", name="Mouse", price=Decimal("50.00"), stock=5, is_active=True),
        ProductModel(id="3", name="Old Monitor", price=Decimal("300.00"), stock=7, is_active=False),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {p.id: p for p in rows}


@pytest.fixture
def customer(db_session):
    c = CustomerModel(id="cust-1", first_name="Anna", last_name="Nowak", email="anna@example.com")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture
def address(db_session, customer):
    a = AddressModel(
        customer_id=customer.id,
        address_line_1="ul. Polna 5",
        city="Krakow",
        postal_code="30-001",
        country="PL",
        phone_number="+48 500 100 200",
    )
    db_session.add(a)
    db_session.commit()
    return a


@pytest.fixture
def store_settings(db_session):
    s = StoreSettingsModel(delivery_fee=Decimal("20.00"))
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(default_ttl=120, clock=clock)


@pytest.fixture
def lookup(db_session):
    return CatalogProductLookup(db_session)


@pytest.fixture
def cart_service(db_session, lookup, cache, products):
    return CartService(db=db_session, product_lookup=lookup, cache=cache)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def checkout_service(db_session, cart_service, notifier):
    return CheckoutService(db=db_session, cart_service=cart_service, notifier=notifier)
