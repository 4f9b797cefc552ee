"""
Catalog lifecycle tests.

Verifies:
- Create seeds an initial-stock adjustment and a price row
- Update writes new price rows and posts stock corrections
- Soft delete, including the "used in transaction" guard and bulk delete
- Listing filters, sorting and pagination
"""

import pytest

from posledger.errors import NotFound, ValidationError
from posledger.models import Price, Product, Transaction
from posledger.services import inventory_service, ledger_service, products_service
from posledger.validation import OrderLine


class TestCreate:
    def test_create_seeds_stock_and_price(self, db_session, admin_user):
        product = products_service.create_product({
            "name": "Instant Noodles",
            "barcode": "8991002101",
            "category_id": "Food",
            "unit": "pcs",
            "stock_qty": 24,
            "purchase_price": 2500,
            "selling_price": 3500,
        }, admin_user.id)

        assert product["category"] == "Food"
        assert product["stock_qty"] == 24
        assert product["purchase_price"] == 2500.0
        assert product["selling_price"] == 3500.0
        assert len(product["stock_history"]) == 1
        history = product["stock_history"][0]
        assert history["qty"] == 24
        assert history["transaction_type"] == "adjustment"
        assert history["description"] == "Initial stock for Instant Noodles"
        assert history["transaction_no"].startswith("ADJ-")

    def test_create_without_stock_defaults_to_zero(self, db_session, admin_user):
        product = products_service.create_product({"name": "Soap"}, admin_user.id)
        assert product["stock_qty"] == 0
        assert product["selling_price"] is None
        assert db_session.query(Transaction).count() == 1

    def test_prices_must_come_together(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "Soap", "selling_price": 3000}, admin_user.id)
        assert db_session.query(Product).count() == 0

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({}, "Missing required fields: name"),
            ({"name": "X", "stock_qty": 0}, "stock_qty must be a positive number"),
            ({"name": "X", "stock_qty": 1.5}, "stock_qty must be an integer, not a decimal"),
            ({"name": "X", "sku": "A1"}, "Field not allowed: sku"),
            ({"name": "X", "purchase_price": -1, "selling_price": 1}, "purchase_price must be a positive number"),
        ],
    )
    def test_invalid_payloads(self, db_session, admin_user, payload, message):
        with pytest.raises(ValidationError) as exc_info:
            products_service.create_product(payload, admin_user.id)
        assert exc_info.value.message == message


class TestUpdate:
    def test_update_fields_and_price(self, db_session, make_product, admin_user):
        product = make_product(name="Cola", purchase_price=4000, selling_price=6000)

        updated = products_service.update_product(product["id"], {"name": "Cola Zero", "selling_price": 6500}, admin_user.id)

        assert updated["name"] == "Cola Zero"
        assert updated["selling_price"] == 6500.0
        assert updated["purchase_price"] == 4000.0
        assert len(updated["price_history"]) == 2
        assert db_session.query(Price).filter_by(product_id=product["id"]).count() == 2

    def test_update_stock_posts_correction(self, db_session, make_product, admin_user):
        product = make_product(name="Eggs", stock_qty=30)

        updated = products_service.update_product(product["id"], {"stock_qty": 18}, admin_user.id)

        assert updated["stock_qty"] == 18
        newest = updated["stock_history"][:2]
        assert sorted(row["qty"] for row in newest) == [-30, 18]
        assert all(row["description"] == "Edit stock for Eggs" for row in newest)

    def test_update_stock_to_zero_allowed(self, db_session, make_product, admin_user):
        product = make_product(stock_qty=3)
        assert products_service.update_product(product["id"], {"stock_qty": 0}, admin_user.id)["stock_qty"] == 0

    def test_update_missing_product(self, db_session, admin_user):
        with pytest.raises(NotFound):
            products_service.update_product(4242, {"name": "Ghost"}, admin_user.id)


class TestDelete:
    def test_soft_delete_hides_product(self, db_session, make_product, admin_user):
        product = make_product(name="Gum")
        before = products_service.delete_product(product["id"], admin_user.id)

        assert before["name"] == "Gum"
        assert before["is_active"] is True
        assert db_session.get(Product, product["id"]).is_active is False
        with pytest.raises(NotFound):
            products_service.get_product(product["id"])

    def test_product_used_in_transaction_cannot_be_deleted(self, db_session, make_product, admin_user):
        product = make_product(stock_qty=5, purchase_price=1000)
        inventory_service.purchase_transaction([OrderLine(product["id"], 1)], admin_user.id)

        with pytest.raises(ValidationError) as exc_info:
            products_service.delete_product(product["id"], admin_user.id)
        assert exc_info.value.message == "Product is used in transaction"
        assert db_session.get(Product, product["id"]).is_active is True

    def test_bulk_delete_is_all_or_nothing(self, db_session, make_product, admin_user):
        free = make_product(name="Free")
        used = make_product(name="Used", purchase_price=1000)
        inventory_service.purchase_transaction([OrderLine(used["id"], 1)], admin_user.id)

        with pytest.raises(ValidationError):
            products_service.delete_products([free["id"], used["id"]], admin_user.id)
        assert db_session.get(Product, free["id"]).is_active is True

        deleted = products_service.delete_products([free["id"]], admin_user.id)
        assert [d["name"] for d in deleted] == ["Free"]

    def test_delete_keeps_ledger(self, db_session, make_product, admin_user):
        product = make_product(stock_qty=9)
        products_service.delete_product(product["id"], admin_user.id)
        assert ledger_service.current_stock(product["id"]) == 9


class TestListing:
    def test_filters_sort_and_pagination(self, db_session, make_product):
        make_product(name="Banana", category="Fruit", stock_qty=3)
        make_product(name="Apple", category="Fruit")
        make_product(name="Carrot", category="Vegetable")

        fruit = products_service.list_products(category="fruit")
        assert [p["name"] for p in fruit["data"]] == ["Apple", "Banana"]
        assert fruit["data"][1]["stock_qty"] == 3

        desc = products_service.list_products(sort_order="DESC", limit=2)
        assert [p["name"] for p in desc["data"]] == ["Carrot", "Banana"]
        assert desc["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}

        searched = products_service.list_products(search="carr")
        assert [p["name"] for p in searched["data"]] == ["Carrot"]

    def test_search_matches_barcode(self, db_session, make_product):
        make_product(name="Milk", barcode="ABC-123")
        make_product(name="Water", barcode="XYZ-999")
        assert [p["name"] for p in products_service.list_products(search="abc")["data"]] == ["Milk"]
