# Overview: Period-over-period sales, profit, product and restock reports.

from __future__ import annotations

import functools
import math
from dataclasses import dataclass
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..money import round_half_up
from .ledger_service import stock_levels_subquery

CATEGORY_COLORS = [
    "#5F6CFF", "#38D4FF", "#FF6B6B", "#4ECDC4", "#45B7D1",
    "#96CEB4", "#FFEAA7", "#DDA0DD", "#98D8C8", "#F7DC6F",
]
UNCATEGORIZED = "Uncategorized"
DEFAULT_UNIT = "pcs"
TOP_PRODUCTS_LIMIT = 10


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] range of business dates."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous(self) -> "DateRange":
        """The immediately preceding period with the same day count."""
        return DateRange(
            start=self.start - timedelta(days=self.days),
            end=self.start - timedelta(days=1),
        )

    def to_dict(self) -> dict:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}


@dataclass(frozen=True)
class Metric:
    current: float
    before: float

    @property
    def growth_percentage(self) -> float:
        return growth_percentage(self.current, self.before)

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "before": self.before,
            "growth_percentage": self.growth_percentage,
        }


def growth_percentage(current: float, previous: float) -> float:
    """
    Percent change rounded half-up to one decimal.

    A zero baseline reads as +100% when there is any current value, else 0.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return math.floor(((current - previous) / previous) * 1000 + 0.5) / 10


def category_color(name: str) -> str:
    """Stable palette pick: 32-bit string hash (h * 31 + c) modulo palette size."""
    h = 0
    for ch in name:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return CATEGORY_COLORS[abs(h) % len(CATEGORY_COLORS)]


def _num(value) -> float:
    return float(value or 0)


def degrade_on_db_error(default_factory):
    """
    Database failures while aggregating are logged and rendered as an
    all-zero report instead of a 500.
    """
    def decorator(func_):
        @functools.wraps(func_)
        def wrapper(*args, **kwargs):
            try:
                return func_(*args, **kwargs)
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception("Failed to build %s report, returning defaults", func_.__name__)
                return default_factory()
        return wrapper
    return decorator


def _headers(transaction_type: str, rng: DateRange):
    return db.session.query(Transaction).filter(
        Transaction.type == transaction_type,
        Transaction.date >= rng.start,
        Transaction.date <= rng.end,
    )


def _total(transaction_type: str, rng: DateRange) -> float:
    q = db.session.query(func.coalesce(func.sum(Transaction.total_amount), 0)).filter(
        Transaction.type == transaction_type,
        Transaction.date >= rng.start,
        Transaction.date <= rng.end,
    )
    return _num(q.scalar())


def _count(transaction_type: str, rng: DateRange) -> int:
    return _headers(transaction_type, rng).count()


def _average(transaction_type: str, rng: DateRange) -> float:
    q = db.session.query(func.coalesce(func.avg(Transaction.total_amount), 0)).filter(
        Transaction.type == transaction_type,
        Transaction.date >= rng.start,
        Transaction.date <= rng.end,
    )
    return round(_num(q.scalar()), 2)


def _cost_of_goods(rng: DateRange) -> float:
    """SUM(qty * cost snapshot) over sale items in range."""
    q = (
        db.session.query(func.coalesce(func.sum(TransactionItem.qty * func.coalesce(TransactionItem.cost, 0)), 0))
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.type == "sale",
            Transaction.date >= rng.start,
            Transaction.date <= rng.end,
        )
    )
    return _num(q.scalar())


def _profit(rng: DateRange) -> float:
    return round(_total("sale", rng) - _cost_of_goods(rng), 2)


def _sold_by_product(rng: DateRange, limit: int | None = None):
    sold = func.sum(TransactionItem.qty)
    q = (
        db.session.query(
            Product.id.label("product_id"),
            Product.name.label("product_name"),
            Product.image_url.label("image_url"),
            sold.label("quantity"),
        )
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.type == "sale",
            Transaction.date >= rng.start,
            Transaction.date <= rng.end,
        )
        .group_by(Product.id, Product.name, Product.image_url)
        .order_by(sold.desc(), Product.id.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def _default_image() -> str:
    return current_app.config["DEFAULT_PRODUCT_IMAGE"]


def _empty_metric() -> dict:
    return Metric(0, 0).to_dict()


def _empty_dashboard() -> dict:
    return {
        "revenue": _empty_metric(),
        "transaction": _empty_metric(),
        "profit": _empty_metric(),
        "top_products_current": [],
    }


@degrade_on_db_error(_empty_dashboard)
def dashboard(rng: DateRange) -> dict:
    prev = rng.previous()
    top = _sold_by_product(rng, TOP_PRODUCTS_LIMIT)
    return {
        "revenue": Metric(_total("sale", rng), _total("sale", prev)).to_dict(),
        "transaction": Metric(_count("sale", rng), _count("sale", prev)).to_dict(),
        "profit": Metric(_profit(rng), _profit(prev)).to_dict(),
        "top_products_current": [
            {
                "name": row.product_name,
                "image": row.image_url or _default_image(),
                "sold": int(row.quantity or 0),
            }
            for row in top
        ],
    }


def payment_breakdown(rng: DateRange) -> list[dict]:
    """Every configured method is listed, even with no sales."""
    rows = (
        db.session.query(Transaction.payment_type, func.coalesce(func.sum(Transaction.total_amount), 0))
        .filter(
            Transaction.type == "sale",
            Transaction.date >= rng.start,
            Transaction.date <= rng.end,
        )
        .group_by(Transaction.payment_type)
        .all()
    )
    totals = {(method or "cash"): _num(total) for method, total in rows}
    grand_total = sum(totals.values())
    breakdown = []
    for method in current_app.config["PAYMENT_METHODS"]:
        total = totals.get(method, 0.0)
        percent = int(round_half_up(total / grand_total * 100)) if grand_total > 0 else 0
        breakdown.append({"method": method, "total": total, "percent": percent})
    return breakdown


def _empty_sales() -> dict:
    return {
        "sales": _empty_metric(),
        "transaction": _empty_metric(),
        "avg_sales": _empty_metric(),
        "payment_method": [
            {"method": m, "total": 0, "percent": 0} for m in current_app.config["PAYMENT_METHODS"]
        ],
    }


@degrade_on_db_error(_empty_sales)
def sales(rng: DateRange) -> dict:
    prev = rng.previous()
    return {
        "sales": Metric(_total("sale", rng), _total("sale", prev)).to_dict(),
        "transaction": Metric(_count("sale", rng), _count("sale", prev)).to_dict(),
        "avg_sales": Metric(_average("sale", rng), _average("sale", prev)).to_dict(),
        "payment_method": payment_breakdown(rng),
    }


def profit_margin(revenue: float, cost: float) -> float:
    if revenue == 0:
        return 0
    return round_half_up((revenue - cost) / revenue * 100, 1)


def _empty_profit() -> dict:
    return {
        "profit": _empty_metric(),
        "profit_margin": {"percentage": 0, "revenue": 0, "cost": 0},
        "sales_history": [],
    }


@degrade_on_db_error(_empty_profit)
def profit(on_date: date) -> dict:
    """Daily profit vs the previous day, margin and per-sale history."""
    day = DateRange(on_date, on_date)
    revenue = _total("sale", day)
    cost = _cost_of_goods(day)

    item_cost = func.coalesce(func.sum(TransactionItem.qty * func.coalesce(TransactionItem.cost, 0)), 0)
    history = (
        db.session.query(Transaction.no, Transaction.total_amount, item_cost.label("cost"))
        .outerjoin(TransactionItem, TransactionItem.transaction_id == Transaction.id)
        .filter(Transaction.type == "sale", Transaction.date == on_date)
        .group_by(Transaction.id, Transaction.no, Transaction.total_amount, Transaction.created_at)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )

    return {
        "profit": Metric(round(revenue - cost, 2), _profit(day.previous())).to_dict(),
        "profit_margin": {
            "percentage": profit_margin(revenue, cost),
            "revenue": revenue,
            "cost": cost,
        },
        "sales_history": [
            {
                "transaction_id": no,
                "revenue": _num(total),
                "profit": round(_num(total) - _num(row_cost), 2),
            }
            for no, total, row_cost in history
        ],
    }


def low_stock_products(threshold: int) -> list[dict]:
    stock_sq = stock_levels_subquery()
    stock_col = func.coalesce(stock_sq.c.stock_qty, 0)
    rows = (
        db.session.query(Product, stock_col.label("stock"))
        .outerjoin(stock_sq, stock_sq.c.product_id == Product.id)
        .filter(Product.is_active.is_(True), stock_col < threshold)
        .order_by(stock_col.asc(), Product.id.asc())
        .all()
    )
    return [
        {
            "product_id": product.id,
            "product_name": product.name,
            "image_url": product.image_url or _default_image(),
            "stock": int(stock or 0),
            "unit": product.unit or DEFAULT_UNIT,
            "threshold": threshold,
            "is_below_threshold": int(stock or 0) < threshold,
        }
        for product, stock in rows
    ]


def _empty_sales_products() -> dict:
    return {
        "top_products": [],
        "sales_by_category": {"total_sales": 0, "categories": []},
        "inventories": [],
    }


@degrade_on_db_error(_empty_sales_products)
def sales_products(rng: DateRange) -> dict:
    prev = rng.previous()
    current_rows = _sold_by_product(rng, TOP_PRODUCTS_LIMIT)
    previous_qty = {row.product_id: int(row.quantity or 0) for row in _sold_by_product(prev)}

    top_products = []
    for rank, row in enumerate(current_rows, start=1):
        quantity = int(row.quantity or 0)
        top_products.append({
            "rank": rank,
            "product_id": row.product_id,
            "product_name": row.product_name,
            "image_url": row.image_url or _default_image(),
            "quantity": quantity,
            "trend": "up" if quantity > previous_qty.get(row.product_id, 0) else "down",
        })

    qty = func.sum(TransactionItem.qty)
    category_rows = (
        db.session.query(Product.category, qty.label("quantity"))
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.type == "sale",
            Transaction.date >= rng.start,
            Transaction.date <= rng.end,
        )
        .group_by(Product.category)
        .order_by(qty.desc())
        .all()
    )
    categories: dict[str, int] = {}
    for category, quantity in category_rows:
        name = category or UNCATEGORIZED
        categories[name] = categories.get(name, 0) + int(quantity or 0)

    return {
        "top_products": top_products,
        "sales_by_category": {
            "total_sales": _count("sale", rng),
            "categories": [
                {"category_name": name, "quantity": quantity, "color": category_color(name)}
                for name, quantity in categories.items()
            ],
        },
        "inventories": low_stock_products(int(current_app.config["LOW_STOCK_THRESHOLD"])),
    }


def _empty_restock() -> dict:
    return {
        "summary": {
            "total_cost": _empty_metric(),
            "total_restock": _empty_metric(),
            "average_cost_per_product": _empty_metric(),
        },
        "restock_items": [],
    }


@degrade_on_db_error(_empty_restock)
def restock(rng: DateRange) -> dict:
    """Purchase spend summary and the purchased lines of the period."""
    prev = rng.previous()
    line_total = TransactionItem.qty * func.coalesce(TransactionItem.price, 0)
    rows = (
        db.session.query(
            Product.id,
            Product.name,
            Product.image_url,
            TransactionItem.qty,
            func.coalesce(TransactionItem.price, 0).label("price"),
            line_total.label("total"),
        )
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.type == "purchase",
            Transaction.date >= rng.start,
            Transaction.date <= rng.end,
        )
        .order_by(line_total.desc(), TransactionItem.id.asc())
        .all()
    )
    return {
        "summary": {
            "total_cost": Metric(_total("purchase", rng), _total("purchase", prev)).to_dict(),
            "total_restock": Metric(_count("purchase", rng), _count("purchase", prev)).to_dict(),
            "average_cost_per_product": Metric(_average("purchase", rng), _average("purchase", prev)).to_dict(),
        },
        "restock_items": [
            {
                "product_id": pid,
                "product_name": name,
                "product_image": image or _default_image(),
                "qty": int(qty),
                "price": _num(price),
                "total": _num(total),
            }
            for pid, name, image, qty, price, total in rows
        ],
    }
