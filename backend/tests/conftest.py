"""
Pytest fixtures for posledger backend tests.

Provides an in-memory database, test client, users with bearer tokens,
and a product factory that goes through the catalog service so initial
stock lands in the ledger the same way production does.
"""

import pytest
from posledger import create_app
from posledger.config import TestingConfig
from posledger.extensions import db
from posledger.services import auth_service, products_service, session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("admin", "Password123", name="Admin", role="admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return auth_service.create_user("cashier", "Password123", name="Cashier", role="cashier")


@pytest.fixture(scope='function')
def auth_headers(cashier_user):
    _, token = session_service.create_session(cashier_user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def make_product(db_session, admin_user):
    """
    Factory: make_product(name, stock_qty=0, purchase_price=..., selling_price=...)
    returns the serialized product (with "id" and "stock_qty").
    """
    counter = {"n": 0}

    def _make(name=None, stock_qty=0, purchase_price=8000, selling_price=10000, **fields):
        counter["n"] += 1
        payload = {
            "name": name or f"Product {counter['n']}",
            "barcode": fields.pop("barcode", f"89900000{counter['n']:04d}"),
            "unit": fields.pop("unit", "pcs"),
            **fields,
        }
        if stock_qty:
            payload["stock_qty"] = stock_qty
        if purchase_price is not None:
            payload["purchase_price"] = purchase_price
        if selling_price is not None:
            payload["selling_price"] = selling_price
        return products_service.create_product(payload, admin_user.id)

    return _make

