"""
Concurrency tests.

Runs checkouts from several threads against a file-backed SQLite database
(in-memory SQLite shares one connection, so it cannot race).

Verifies:
- Racing checkouts for the last unit: exactly one succeeds, stock ends at 0
- Concurrent sales receive distinct, consecutive transaction numbers
"""

import threading

import pytest

from posledger import create_app
from posledger.config import TestingConfig
from posledger.errors import InsufficientStock
from posledger.extensions import db
from posledger.services import auth_service, checkout_service, ledger_service, products_service
from posledger.services.checkout_service import CheckoutResult
from posledger.validation import OrderLine


@pytest.fixture
def file_app(tmp_path):
    class FileBackedConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.db'}"

    app = create_app(FileBackedConfig)
    with app.app_context():
        db.create_all()
        user = auth_service.create_user("racer", "Password123", name="Racer", role="cashier")
        app.config["RACER_ID"] = user.id
        db.session.remove()

        yield app

        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed_product(app, stock_qty: int) -> int:
    product = products_service.create_product(
        {"name": "Last Unit", "stock_qty": stock_qty, "purchase_price": 400, "selling_price": 1000},
        app.config["RACER_ID"],
    )
    db.session.remove()
    return product["id"]


def _race(app, workers: int, target) -> list:
    """Start `workers` threads together; each runs target() in its own app context."""
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                outcome = target()
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


class TestConcurrentCheckout:
    def test_last_unit_sold_once(self, file_app):
        product_id = _seed_product(file_app, 1)

        outcomes = _race(
            file_app,
            4,
            lambda: checkout_service.checkout(
                [OrderLine(product_id, 1)], "cash", 1000, file_app.config["RACER_ID"],
            ),
        )

        sold = [o for o in outcomes if isinstance(o, CheckoutResult)]
        refused = [o for o in outcomes if isinstance(o, InsufficientStock)]
        assert len(sold) == 1, outcomes
        assert len(refused) == 3, outcomes
        assert ledger_service.current_stock(product_id) == 0
        assert ledger_service.verify_all() == []

    def test_concurrent_sales_get_distinct_numbers(self, file_app):
        product_id = _seed_product(file_app, 20)

        outcomes = _race(
            file_app,
            8,
            lambda: checkout_service.checkout(
                [OrderLine(product_id, 1)], "qris", 1000, file_app.config["RACER_ID"],
            ),
        )

        assert all(isinstance(o, CheckoutResult) for o in outcomes), outcomes
        numbers = [o.transaction_no for o in outcomes]
        assert len(set(numbers)) == 8
        assert all(n.startswith("SAL-") for n in numbers)
        assert sorted(n.rsplit("-", 1)[1] for n in numbers) == [f"{i:04d}" for i in range(1, 9)]
        assert ledger_service.current_stock(product_id) == 12
