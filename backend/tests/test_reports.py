"""
Reporting tests.

Verifies:
- Growth percentage arithmetic and rounding
- Category colours are stable palette picks
- Dashboard, sales, profit, product and restock aggregates over sales and purchases
- Database failures degrade reports to zero-valued defaults
"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from posledger.errors import ValidationError
from posledger.models import Product
from posledger.services import checkout_service, inventory_service, reporting_service
from posledger.services.reporting_service import CATEGORY_COLORS, DateRange, Metric
from posledger.time_utils import utctoday
from posledger.validation import OrderLine, parse_date_range


class TestArithmetic:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (150, 100, 50.0),
            (100, 150, -33.3),
            (100, 100, 0.0),
            (0, 100, -100.0),
            (5, 0, 100),
            (0, 0, 0),
            (1, 3, -66.7),
        ],
    )
    def test_growth_percentage(self, current, previous, expected):
        assert reporting_service.growth_percentage(current, previous) == expected

    def test_metric_dict(self):
        assert Metric(120, 100).to_dict() == {"current": 120, "before": 100, "growth_percentage": 20.0}

    def test_profit_margin(self):
        assert reporting_service.profit_margin(30000, 24000) == 20.0
        assert reporting_service.profit_margin(0, 0) == 0

    def test_category_color_is_stable(self):
        assert reporting_service.category_color("") == CATEGORY_COLORS[0]
        assert reporting_service.category_color("a") == CATEGORY_COLORS[97 % len(CATEGORY_COLORS)]
        color = reporting_service.category_color("Beverages")
        assert color in CATEGORY_COLORS
        assert reporting_service.category_color("Beverages") == color

    def test_previous_range_has_same_length(self):
        rng = DateRange(date(2026, 3, 10), date(2026, 3, 16))
        prev = rng.previous()
        assert rng.days == 7
        assert (prev.start, prev.end) == (date(2026, 3, 3), date(2026, 3, 9))

    def test_range_needs_a_previous_period(self):
        with pytest.raises(ValidationError):
            parse_date_range("0001-01-01", "0001-01-02")
        assert parse_date_range("0001-01-03", "0001-01-04") == (date(1, 1, 3), date(1, 1, 4))


@pytest.fixture
def sold_goods(db_session, make_product, cashier_user):
    """Two products; 3 coffees by cash and 1 coffee + 2 teas by qris, all today."""
    coffee = make_product(name="Coffee", category="Drinks", stock_qty=20, purchase_price=8000, selling_price=10000)
    tea = make_product(name="Tea", category="Drinks", stock_qty=5, purchase_price=3000, selling_price=5000)
    checkout_service.checkout([OrderLine(coffee["id"], 3)], "cash", 30000, cashier_user.id)
    checkout_service.checkout([OrderLine(coffee["id"], 1), OrderLine(tea["id"], 2)], "qris", 20000, cashier_user.id)
    return coffee, tea


class TestReports:
    def test_dashboard(self, sold_goods):
        today = DateRange(utctoday(), utctoday())
        report = reporting_service.dashboard(today)

        assert report["revenue"] == {"current": 50000.0, "before": 0.0, "growth_percentage": 100}
        assert report["transaction"]["current"] == 2
        # Cost: 4 coffees at 8000 + 2 teas at 3000
        assert report["profit"]["current"] == 50000.0 - 38000.0
        assert report["top_products_current"][0] == {
            "name": "Coffee",
            "image": "/img/default-product.png",
            "sold": 4,
        }

    def test_sales_payment_breakdown(self, sold_goods):
        today = DateRange(utctoday(), utctoday())
        report = reporting_service.sales(today)

        assert report["sales"]["current"] == 50000.0
        assert report["avg_sales"]["current"] == 25000.0
        assert report["payment_method"] == [
            {"method": "cash", "total": 30000.0, "percent": 60},
            {"method": "qris", "total": 20000.0, "percent": 40},
        ]

    def test_empty_period_lists_every_method(self, db_session):
        report = reporting_service.sales(DateRange(date(2020, 1, 1), date(2020, 1, 31)))
        assert report["sales"] == {"current": 0.0, "before": 0.0, "growth_percentage": 0}
        assert [m["method"] for m in report["payment_method"]] == ["cash", "qris"]
        assert all(m["percent"] == 0 for m in report["payment_method"])

    def test_profit(self, sold_goods):
        report = reporting_service.profit(utctoday())

        assert report["profit"]["current"] == 12000.0
        assert report["profit_margin"] == {"percentage": 24.0, "revenue": 50000.0, "cost": 38000.0}
        assert sorted(h["profit"] for h in report["sales_history"]) == [6000.0, 6000.0]

    def test_sales_products(self, sold_goods):
        coffee, tea = sold_goods
        report = reporting_service.sales_products(DateRange(utctoday(), utctoday()))

        assert [(p["rank"], p["product_name"], p["quantity"], p["trend"]) for p in report["top_products"]] == [
            (1, "Coffee", 4, "up"),
            (2, "Tea", 2, "up"),
        ]
        assert report["sales_by_category"]["total_sales"] == 2
        assert report["sales_by_category"]["categories"] == [
            {"category_name": "Drinks", "quantity": 6, "color": reporting_service.category_color("Drinks")},
        ]
        # Coffee has 16 left, Tea 3; threshold is 15
        low = {row["product_name"]: row["stock"] for row in report["inventories"]}
        assert low == {"Tea": 3}

    def test_restock_report(self, db_session, make_product, admin_user):
        flour = make_product(name="Flour", purchase_price=9000)
        inventory_service.purchase_transaction([OrderLine(flour["id"], 4)], admin_user.id)

        report = reporting_service.restock(DateRange(utctoday(), utctoday()))

        assert report["summary"]["total_cost"]["current"] == 36000.0
        assert report["summary"]["total_restock"]["current"] == 1
        assert report["restock_items"] == [{
            "product_id": flour["id"],
            "product_name": "Flour",
            "product_image": "/img/default-product.png",
            "qty": 4,
            "price": 9000.0,
            "total": 36000.0,
        }]


def _locked(*args, **kwargs):
    raise OperationalError("SELECT SUM(total_amount) FROM transactions", {}, Exception("database is locked"))


class TestDegradedReports:
    @pytest.fixture
    def broken_aggregates(self, monkeypatch):
        monkeypatch.setattr(reporting_service, "_total", _locked)
        monkeypatch.setattr(reporting_service, "_count", _locked)

    def test_reports_fall_back_to_zero_values(self, db_session, broken_aggregates):
        zero = {"current": 0, "before": 0, "growth_percentage": 0}
        today = DateRange(utctoday(), utctoday())

        assert reporting_service.dashboard(today) == {
            "revenue": zero, "transaction": zero, "profit": zero, "top_products_current": [],
        }
        assert reporting_service.sales(today) == {
            "sales": zero,
            "transaction": zero,
            "avg_sales": zero,
            "payment_method": [
                {"method": "cash", "total": 0, "percent": 0},
                {"method": "qris", "total": 0, "percent": 0},
            ],
        }
        assert reporting_service.profit(utctoday()) == {
            "profit": zero,
            "profit_margin": {"percentage": 0, "revenue": 0, "cost": 0},
            "sales_history": [],
        }
        assert reporting_service.sales_products(today) == {
            "top_products": [],
            "sales_by_category": {"total_sales": 0, "categories": []},
            "inventories": [],
        }
        assert reporting_service.restock(today) == {
            "summary": {"total_cost": zero, "total_restock": zero, "average_cost_per_product": zero},
            "restock_items": [],
        }

    def test_session_usable_after_degraded_report(self, db_session, make_product, broken_aggregates):
        make_product(name="Tea", stock_qty=2)
        reporting_service.dashboard(DateRange(utctoday(), utctoday()))
        assert db_session.query(Product).filter_by(name="Tea").count() == 1

    def test_route_answers_ok(self, client, auth_headers, broken_aggregates):
        resp = client.get("/api/report/sales", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json["message"] == "Sales report retrieved successfully"
        assert resp.json["data"]["sales"] == {"current": 0, "before": 0, "growth_percentage": 0}
