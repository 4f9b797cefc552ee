"""
Checkout tests.

Verifies:
- A sale writes one header, one item per line and one negative ledger row per line
- Price mismatch and insufficient stock leave the database untouched
- Duplicate lines are merged before the stock check
- Review is read-only
"""

import pytest

from posledger.errors import InsufficientStock, NotFound, PriceMismatch, ValidationError
from posledger.models import Stock, Transaction, TransactionItem, TransactionSequence
from posledger.services import checkout_service, inventory_service, ledger_service
from posledger.validation import OrderLine


def _counts(db_session):
    return (
        db_session.query(Transaction).count(),
        db_session.query(TransactionItem).count(),
        db_session.query(Stock).count(),
    )


class TestCheckout:
    def test_sale_persists_header_items_and_ledger(self, db_session, make_product, cashier_user):
        coffee = make_product(name="Coffee", stock_qty=10, selling_price=15000, purchase_price=9000)
        bread = make_product(name="Bread", stock_qty=4, selling_price=5000, purchase_price=3000)

        result = checkout_service.checkout(
            [OrderLine(coffee["id"], 2), OrderLine(bread["id"], 1)],
            "cash",
            35000,
            cashier_user.id,
        )

        assert result.transaction_no.startswith("SAL-")
        assert result.transaction_no.endswith("-0001")
        assert result.total_price == 35000.0
        assert result.to_dict()["paymentMethod"] == "cash"

        txn = db_session.get(Transaction, result.transaction_id)
        assert txn.type == "sale"
        assert txn.payment_type == "cash"
        assert txn.description == "Sale transaction - cash"
        assert float(txn.total_amount) == 35000.0
        assert float(txn.paid_amount) == 35000.0
        assert [(i.product_id, i.qty, float(i.price), float(i.cost)) for i in txn.items] == [
            (coffee["id"], 2, 15000.0, 9000.0),
            (bread["id"], 1, 5000.0, 3000.0),
        ]
        assert sorted((s.product_id, s.qty) for s in txn.stocks) == sorted([(coffee["id"], -2), (bread["id"], -1)])
        assert ledger_service.current_stock(coffee["id"]) == 8
        assert ledger_service.current_stock(bread["id"]) == 3

    def test_insufficient_stock_scenario(self, db_session, make_product, admin_user, cashier_user):
        """[+50 purchase, -3 sale] leaves 47; 48 fails, 47 succeeds and empties the shelf."""
        product = make_product(name="Milk", selling_price=10000)
        inventory_service.purchase_transaction([OrderLine(product["id"], 50)], admin_user.id)
        checkout_service.checkout([OrderLine(product["id"], 3)], "cash", 30000, cashier_user.id)
        moves = (
            db_session.query(Stock.qty)
            .filter(Stock.product_id == product["id"], Stock.qty != 0)
            .order_by(Stock.id)
            .all()
        )
        assert [qty for (qty,) in moves] == [50, -3]
        assert ledger_service.current_stock(product["id"]) == 47

        before = _counts(db_session)
        with pytest.raises(InsufficientStock) as exc_info:
            checkout_service.checkout([OrderLine(product["id"], 48)], "cash", 480000, cashier_user.id)
        assert exc_info.value.message == "Product Milk has insufficient stock"
        assert _counts(db_session) == before
        assert ledger_service.current_stock(product["id"]) == 47

        result = checkout_service.checkout([OrderLine(product["id"], 47)], "qris", 470000, cashier_user.id)
        last = db_session.query(Stock).filter_by(product_id=product["id"]).order_by(Stock.id.desc()).first()
        assert last.qty == -47
        assert last.transaction_id == result.transaction_id
        assert ledger_service.current_stock(product["id"]) == 0

    def test_price_mismatch_leaves_ledger_unchanged(self, db_session, make_product, cashier_user):
        product = make_product(stock_qty=5, selling_price=10000)
        before = _counts(db_session)

        with pytest.raises(PriceMismatch) as exc_info:
            checkout_service.checkout([OrderLine(product["id"], 2)], "cash", 19000, cashier_user.id)
        assert exc_info.value.details == {"submitted": 19000.0, "computed": 20000.0}

        assert _counts(db_session) == before
        assert ledger_service.current_stock(product["id"]) == 5
        assert db_session.query(TransactionSequence).filter_by(type="sale").count() == 0

    def test_duplicate_lines_merged_before_stock_check(self, db_session, make_product, cashier_user):
        product = make_product(name="Soda", stock_qty=3, selling_price=1000)
        pid = product["id"]

        with pytest.raises(InsufficientStock) as exc_info:
            checkout_service.checkout([OrderLine(pid, 2), OrderLine(pid, 2)], "cash", 4000, cashier_user.id)
        assert exc_info.value.details == {"product_id": pid, "requested_quantity": 4, "on_hand": 3}
        assert ledger_service.current_stock(pid) == 3

        result = checkout_service.checkout([OrderLine(pid, 1), OrderLine(pid, 2)], "cash", 3000, cashier_user.id)
        txn = db_session.get(Transaction, result.transaction_id)
        assert [(i.product_id, i.qty) for i in txn.items] == [(pid, 3)]
        assert [s.qty for s in txn.stocks] == [-3]
        assert ledger_service.current_stock(pid) == 0

    def test_total_within_tolerance_accepted(self, db_session, make_product, cashier_user):
        product = make_product(stock_qty=5, selling_price=10000)
        result = checkout_service.checkout([OrderLine(product["id"], 1)], "cash", 10000.01, cashier_user.id)
        assert result.total_price == 10000.01

    def test_failed_attempt_does_not_consume_number(self, db_session, make_product, cashier_user):
        product = make_product(stock_qty=1, selling_price=10000)
        with pytest.raises(InsufficientStock):
            checkout_service.checkout([OrderLine(product["id"], 2)], "cash", 20000, cashier_user.id)

        result = checkout_service.checkout([OrderLine(product["id"], 1)], "cash", 10000, cashier_user.id)
        assert result.transaction_no.endswith("-0001")

    def test_unknown_payment_method(self, db_session, make_product, cashier_user):
        product = make_product(stock_qty=5)
        with pytest.raises(ValidationError):
            checkout_service.checkout([OrderLine(product["id"], 1)], "card", 10000, cashier_user.id)

    def test_inactive_product_not_found(self, db_session, make_product, admin_user, cashier_user):
        from posledger.services import products_service

        product = make_product(stock_qty=5)
        products_service.delete_product(product["id"], admin_user.id)

        with pytest.raises(NotFound) as exc_info:
            checkout_service.checkout([OrderLine(product["id"], 1)], "cash", 10000, cashier_user.id)
        assert exc_info.value.message == f"Product with ID {product['id']} not found"

    def test_product_without_price_rejected(self, db_session, make_product, cashier_user):
        product = make_product(stock_qty=5, purchase_price=None, selling_price=None)
        with pytest.raises(ValidationError):
            checkout_service.checkout([OrderLine(product["id"], 1)], "cash", 1, cashier_user.id)
        assert ledger_service.current_stock(product["id"]) == 5


class TestReview:
    def test_review_prices_lines_without_writing(self, db_session, make_product):
        product = make_product(name="Juice", stock_qty=1, selling_price=12500)
        before = _counts(db_session)

        review = checkout_service.review_order([OrderLine(product["id"], 3)])

        assert review["totalPrice"] == 37500.0
        assert review["paymentMethods"] == ["cash", "qris"]
        assert review["products"] == [{
            "id": product["id"],
            "name": "Juice",
            "barcode": product["barcode"],
            "qty": 3,
            "price": 12500.0,
            "subtotal": 37500.0,
        }]
        assert _counts(db_session) == before
