"""
Pytest fixtures for order board backend tests.

Provides test database setup, catalog/client/unit fixtures, a fixed clock
and a deferred write submitter for optimistic-update tests.
"""

from concurrent.futures import Future
from datetime import datetime, timedelta

import pytest

from orderboard import create_app
from orderboard.extensions import db
from orderboard.models import CatalogProduct, Client, ClientAddress
from orderboard.services import inventory_unit_service
from orderboard.services.order_repository import OrderQueryCache, SqlOrderRepository
from orderboard.services.order_types import DraftItem, DraftPayment, OrderDraft


# 12:00 local time in Sao Paulo (UTC-3)
FIXED_NOW = datetime(2026, 10, 18, 15, 0, 0)
TIMEZONE = "America/Sao_Paulo"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': TIMEZONE,
        'ORDER_CACHE_TTL_SECONDS': 0,
        'FIXED_DELIVERY_FEE_CENTS': 800,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def repository(db_session):
    """SQL repository with caching off and the clock pinned to FIXED_NOW."""
    return SqlOrderRepository(TIMEZONE, clock=lambda: FIXED_NOW, cache=OrderQueryCache(ttl_seconds=0))


@pytest.fixture
def products(db_session):
    """Two internally weighed products and one resale product."""
    chicken = CatalogProduct(name="Frango Assado", base_price_cents=5990, is_internal=True, shelf_life_days=2)
    ribs = CatalogProduct(name="Costela Assada", base_price_cents=8990, is_internal=True, shelf_life_days=2)
    farofa = CatalogProduct(name="Farofa", base_price_cents=1200, is_internal=False)
    db_session.add_all([chicken, ribs, farofa])
    db_session.commit()
    return {"chicken": chicken, "ribs": ribs, "farofa": farofa}


@pytest.fixture
def customer(db_session):
    """Client with one saved delivery address."""
    maria = Client(name="Maria Souza", phone="11999990000")
    db_session.add(maria)
    db_session.flush()
    address = ClientAddress(
        client_id=maria.id, street="Rua das Flores", number="120", neighborhood="Centro", city="Sao Paulo",
    )
    db_session.add(address)
    db_session.commit()
    return maria


@pytest.fixture
def units(products):
    """Two available chicken units and one ribs unit."""
    return {
        "chicken": [
            inventory_unit_service.create_unit(catalog_product_id=products["chicken"].id, weight_grams=1300),
            inventory_unit_service.create_unit(catalog_product_id=products["chicken"].id, weight_grams=1450),
        ],
        "ribs": [
            inventory_unit_service.create_unit(catalog_product_id=products["ribs"].id, weight_grams=1800),
        ],
    }


@pytest.fixture
def make_draft(products):
    """Build an OrderDraft: one chicken + two farofa, scheduled 2h after FIXED_NOW."""
    def _make(*, payments=(), scheduled_at=FIXED_NOW + timedelta(hours=2), **overrides):
        draft = OrderDraft(
            items=[
                DraftItem(
                    catalog_product_id=products["chicken"].id,
                    name="Frango Assado",
                    unit_price_cents=5990,
                ),
                DraftItem(
                    catalog_product_id=products["farofa"].id,
                    name="Farofa",
                    unit_price_cents=1200,
                    quantity=2,
                ),
            ],
            scheduled_at=scheduled_at,
            payments=[DraftPayment(method=method, amount_cents=amount) for method, amount in payments],
        )
        for key, value in overrides.items():
            setattr(draft, key, value)
        return draft
    return _make


class DeferredSubmitter:
    """submit() stand-in that holds writes until the test releases them."""

    def __init__(self):
        self.calls = []

    def __call__(self, fn, *args):
        future = Future()
        self.calls.append((future, fn, args))
        return future

    def run_next(self):
        future, fn, args = self.calls.pop(0)
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def run_all(self):
        done = []
        while self.calls:
            done.append(self.run_next())
        return done


@pytest.fixture
def deferred():
    return DeferredSubmitter()
