"""
Pytest fixtures for RxPOS backend tests.

Provides the application on an in-memory SQLite database, a fresh schema
per test, the Flask test client, and factories for users, products and lots.
"""

from datetime import date

import pytest

from rxpos import create_app
from rxpos.extensions import db
from rxpos.models import Product, StockLot, User


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': None,
        'SALE_RETRY_BACKOFF': 0.0,
        'LOG_LEVEL': 'DEBUG',
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
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session()

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def owner(db_session):
    user = User(username="owner", name="Pharmacy Owner", role="OWNER", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff(db_session):
    user = User(username="staff", name="Counter Staff", role="STAFF", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name=..., price_cents=..., reorder_level=..., is_active=...)."""
    def _make(name="Paracetamol 500mg", price_cents=250, reorder_level=None, is_active=True):
        product = Product(
            name=name,
            selling_price_cents=price_cents,
            reorder_level=reorder_level,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_lot(db_session):
    """Factory: make_lot(product, expiry_date, qty) inserts a lot directly (no stock-in batch)."""
    counter = {"n": 0}

    def _make(product, expiry_date: date, qty: int, lot_ref_no: str | None = None):
        counter["n"] += 1
        lot = StockLot(
            product_id=product.id,
            lot_ref_no=lot_ref_no or f"STK-20260101-{counter['n']:04d}",
            expiry_date=expiry_date,
            qty_received=qty,
            qty_remaining=qty,
        )
        db_session.add(lot)
        db_session.commit()
        return lot
    return _make


@pytest.fixture(scope='function')
def remaining(db_session):
    """remaining(*lots) -> fresh qty_remaining for each lot, read from the database."""
    def _remaining(*lots) -> list[int]:
        db_session.expire_all()
        return [db_session.get(StockLot, lot.id).qty_remaining for lot in lots]
    return _remaining


@pytest.fixture(scope='function')
def owner_headers(owner) -> dict:
    """Actor header for API calls made as the owner."""
    return {"X-User-Id": str(owner.id)}
