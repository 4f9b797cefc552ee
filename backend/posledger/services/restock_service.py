# Overview: Sales-velocity restock recommendations (days of stock left, reorder quantity).

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import InternalError
from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..money import round_half_up
from ..time_utils import utctoday
from .ledger_service import stock_levels

NOT_DECREASING = "Stock not decreasing"
SORT_FIELDS = ("estimated_days_left", "current_stock", "product_name")


def average_days() -> int:
    """RESTOCK_AVG_DAYS as a positive int; anything else is a server misconfiguration."""
    raw = current_app.config.get("RESTOCK_AVG_DAYS")
    if raw in (None, ""):
        raise InternalError("RESTOCK_AVG_DAYS is not configured")
    try:
        days = int(str(raw).strip())
    except ValueError:
        raise InternalError("RESTOCK_AVG_DAYS must be a positive number")
    if days <= 0:
        raise InternalError("RESTOCK_AVG_DAYS must be a positive number")
    return days


def estimated_days_left(current_stock: int, total_sold: int, days: int):
    """stock / (sold / days) to one decimal, or NOT_DECREASING when nothing sold."""
    average = total_sold / days
    if average == 0:
        return NOT_DECREASING
    return round_half_up(current_stock / average, 1)


def restock_quantity(current_stock: int, total_sold: int, days: int) -> int:
    """Units needed to cover `days` more days at the current sales rate."""
    average = total_sold / days
    return max(int(round_half_up(days * average - current_stock)), 0)


def _units_sold(product_ids: list[int], days: int) -> dict[int, int]:
    if not product_ids:
        return {}
    since = utctoday() - timedelta(days=days)
    rows = (
        db.session.query(TransactionItem.product_id, func.coalesce(func.sum(TransactionItem.qty), 0))
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            TransactionItem.product_id.in_(product_ids),
            Transaction.type == "sale",
            Transaction.date >= since,
        )
        .group_by(TransactionItem.product_id)
        .all()
    )
    return {pid: int(qty or 0) for pid, qty in rows}


def _recommend(products: list[Product], days: int) -> list[dict]:
    ids = [p.id for p in products]
    levels = stock_levels(ids)
    sold = _units_sold(ids, days)

    items = []
    for product in products:
        stock = levels.get(product.id, 0)
        total_sold = sold.get(product.id, 0)
        estimate = estimated_days_left(stock, total_sold, days)
        if isinstance(estimate, str) or estimate >= days:
            continue
        items.append({
            "product_id": product.id,
            "product_name": product.name,
            "category_name": product.category or "Uncategorized",
            "image_url": product.image_url or "",
            "unit": product.unit or "pcs",
            "current_stock": stock,
            "estimated_days_left": estimate,
            "restock_quantity": restock_quantity(stock, total_sold, days),
            "is_need_restock": True,
        })
    return items


def _sort(items: list[dict], sort_by: str | None, order: str | None) -> list[dict]:
    reverse = order == "desc"
    if sort_by == "current_stock":
        return sorted(items, key=lambda i: i["current_stock"], reverse=reverse)
    if sort_by == "product_name":
        return sorted(items, key=lambda i: i["product_name"].casefold(), reverse=reverse)

    numeric = [i for i in items if not isinstance(i["estimated_days_left"], str)]
    textual = [i for i in items if isinstance(i["estimated_days_left"], str)]
    numeric.sort(key=lambda i: i["estimated_days_left"], reverse=reverse)
    # Non-numeric estimates sort after numbers ascending, before them descending
    return textual + numeric if reverse else numeric + textual


def recommendations(*, search: str | None = None, sort_by: str | None = None, order: str | None = None) -> list[dict]:
    """Active products (optionally name-filtered) that will run out within RESTOCK_AVG_DAYS."""
    days = average_days()
    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if search:
        query = query.filter(func.lower(Product.name).like(f"%{search.strip().lower()}%"))
    products = query.order_by(Product.id.asc()).all()
    return _sort(_recommend(products, days), sort_by, order)


def recommendations_for_products(
    product_ids: list[int], *, sort_by: str | None = None, order: str | None = None,
) -> list[dict]:
    """Same rules restricted to the given products (inactive ones included); id order unless sort_by is given."""
    days = average_days()
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(product_ids))
        .order_by(Product.id.asc())
        .all()
    )
    items = _recommend(products, days)
    return _sort(items, sort_by, order) if sort_by else items
