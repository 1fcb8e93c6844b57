import os

# settings are read at import time, point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.data.models  # noqa: F401
from storefront.data.database import Base
from storefront.data.models import ProductModel, ProductVariantModel
from storefront.domain.errors import AppError
from storefront.domain.schemas import AddressIn
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutOptions, CheckoutService
from storefront.services.event_bus import EventBus
from storefront.services.gateways.base import PaymentGateway, PaymentIntent
from storefront.services.pricing_service import PricingConfig


class FakeGateway(PaymentGateway):
    name = "fake"

    def __init__(self, fail: bool = False):
        super().__init__(timeout=1)
        self.fail = fail
        self.calls = []

    def create_intent(self, amount, currency, metadata, return_url=None, cancel_url=None):
        self.calls.append(
            {"amount": amount, "currency": currency, "metadata": metadata, "return_url": return_url}
        )
        if self.fail:
            raise AppError.unavailable("Payment gateway is temporarily unavailable", provider=self.name)
        return PaymentIntent(external_id=f"pi_{len(self.calls)}", client_secret="secret_abc")


class FakeLock:
    def __init__(self):
        self.keys = {}

    def claim_order_reservation(self, order_id, owner, ttl=60):
        if order_id in self.keys:
            return False
        self.keys[order_id] = owner
        return True

    def release_order_reservation(self, order_id, owner):
        if self.keys.get(order_id) == owner:
            del self.keys[order_id]
            return True
        return False


class EventRecorder:
    def __init__(self, bus: EventBus):
        self.bus = bus
        self.events = []

    def listen(self, *names):
        for name in names:
            self.bus.subscribe(name, lambda payload, name=name: self.events.append((name, payload)))
        return self

    def named(self, name):
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def lock():
    return FakeLock()


@pytest.fixture
def pricing_config():
    return PricingConfig()


@pytest.fixture
def address():
    return AddressIn(
        first_name="Sara",
        last_name="Karimi",
        phone="+98 912 345 6789",
        postal_code="11369-13751",
        province="Tehran",
        city="Tehran",
        address_line1="Valiasr St. 12",
    )


@pytest.fixture
def make_product(db):
    def _make(title="Koala plush", price=100_000, variants=(), currency="IRR", is_active=True):
        product = ProductModel(title=title, price=price, currency_code=currency, is_active=is_active)
        db.add(product)
        for name, variant_price, stock in variants:
            db.add(ProductVariantModel(product=product, variant_name=name, price=variant_price, stock=stock))
        db.commit()
        return product

    return _make


@pytest.fixture
def fill_cart(db):
    """Active cart for a user holding (product, variant or None, quantity) lines."""
    def _fill(lines, user_id=1):
        carts = CartService(db)
        cart = carts.get_or_create_for_user(user_id)
        for product, variant, quantity in lines:
            carts.add_item(cart.id, product.id, variant.id if variant is not None else None, quantity)
        return cart

    return _fill


@pytest.fixture
def checkout_service(db, bus, gateway, pricing_config):
    def _build(**kw):
        kw.setdefault("gateway", gateway)
        kw.setdefault("pricing_config", pricing_config)
        kw.setdefault("reserve_on_checkout", False)
        kw.setdefault("allow_backorder", False)
        kw.setdefault("order_prefix", "KL")
        return CheckoutService(db, bus, **kw)

    return _build


@pytest.fixture
def place_order(checkout_service, address):
    def _place(cart, payment_method="cod", user_id=1, service=None, **options):
        svc = service or checkout_service()
        return svc.create_order_from_cart(
            cart.id, user_id, address, CheckoutOptions(payment_method=payment_method, **options)
        )

    return _place
