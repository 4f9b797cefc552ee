# Overview: Stock ledger writer and aggregator; every stock change goes through here.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func

from ..errors import InsufficientStock, InternalError
from ..extensions import db
from ..models import Product, Stock, Transaction, TransactionItem
from ..time_utils import utctoday
from .numbering_service import next_transaction_number
"""
Stock ledger invariants (authoritative)

- Stock is never a stored column. On-hand for a product is
  COALESCE(SUM(stocks.qty), 0) over all of its ledger rows.
- Ledger rows are append-only: never updated, never deleted.
- Every ledger row belongs to a transaction header that has at least one
  item for the same product.
- Writers flush, they never commit. The caller's atomic scope decides
  whether header, items and ledger rows land together or not at all.
- After a stock-reducing write the affected sums are re-read inside the
  same scope and must be >= 0.
"""


@dataclass(frozen=True)
class LedgerEntry:
    """One signed quantity delta to append for a product."""
    product_id: int
    qty: int
    unit: Optional[str] = None
    description: Optional[str] = None


def create_transaction_header(
    transaction_type: str,
    *,
    actor_id: int,
    description: str | None = None,
    total_amount: Decimal | None = None,
    paid_amount: Decimal | None = None,
    payment_type: str | None = None,
) -> Transaction:
    """Mint a number and insert the header (flush only)."""
    on_date = utctoday()
    txn = Transaction(
        no=next_transaction_number(transaction_type, on_date),
        type=transaction_type,
        date=on_date,
        description=description,
        total_amount=total_amount,
        paid_amount=paid_amount,
        payment_type=payment_type,
        created_by=actor_id,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def add_transaction_item(
    transaction: Transaction,
    *,
    product_id: int,
    qty: int,
    unit: str | None = None,
    price: Decimal | None = None,
    cost: Decimal | None = None,
    description: str | None = None,
) -> TransactionItem:
    item = TransactionItem(
        transaction_id=transaction.id,
        product_id=product_id,
        unit=unit,
        qty=qty,
        price=price,
        cost=cost,
        description=description,
    )
    db.session.add(item)
    return item


def post_ledger_entries(transaction: Transaction, entries: Iterable[LedgerEntry], actor_id: int) -> list[Stock]:
    """
    Append one stock row per entry, typed after the transaction.

    Raises InternalError if an entry names a product that has no item in
    this transaction; that would break reconciliation between items and
    ledger rows.
    """
    entries = list(entries)
    db.session.flush()
    item_products = {
        row.product_id
        for row in db.session.query(TransactionItem.product_id).filter_by(transaction_id=transaction.id)
    }

    rows = []
    for entry in entries:
        if entry.product_id not in item_products:
            raise InternalError(
                "Ledger entry without a transaction item",
                {"transaction_no": transaction.no, "product_id": entry.product_id},
            )
        row = Stock(
            product_id=entry.product_id,
            transaction_id=transaction.id,
            type=transaction.type,
            qty=entry.qty,
            unit=entry.unit,
            description=entry.description,
            created_by=actor_id,
        )
        db.session.add(row)
        rows.append(row)

    db.session.flush()
    return rows


def current_stock(product_id: int) -> int:
    q = db.session.query(func.coalesce(func.sum(Stock.qty), 0)).filter(Stock.product_id == product_id)
    return int(q.scalar() or 0)


def stock_levels(product_ids: Iterable[int]) -> dict[int, int]:
    """Batched on-hand lookup; products without ledger rows map to 0."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}
    rows = (
        db.session.query(Stock.product_id, func.coalesce(func.sum(Stock.qty), 0))
        .filter(Stock.product_id.in_(ids))
        .group_by(Stock.product_id)
        .all()
    )
    levels = {pid: 0 for pid in ids}
    for pid, qty in rows:
        levels[pid] = int(qty or 0)
    return levels


def stock_levels_subquery():
    """(product_id, stock_qty) per product, for joining into listings and reports."""
    return (
        db.session.query(
            Stock.product_id.label("product_id"),
            func.coalesce(func.sum(Stock.qty), 0).label("stock_qty"),
        )
        .group_by(Stock.product_id)
        .subquery()
    )


def assert_non_negative(product_ids: Iterable[int]) -> None:
    """Re-read sums inside the open scope; the first negative one aborts the write."""
    db.session.flush()
    levels = stock_levels(product_ids)
    for pid in sorted(levels):
        qty = levels[pid]
        if qty < 0:
            name = db.session.query(Product.name).filter_by(id=pid).scalar()
            raise InsufficientStock(
                f"Insufficient stock for {name or pid}",
                {"product_id": pid, "product_name": name, "resulting_stock": qty},
            )


def correction_entries(
    product_id: int,
    prior_qty: int,
    new_qty: int,
    unit: str | None = None,
    description: str | None = None,
) -> list[LedgerEntry]:
    """
    Negate-then-apply: cancel the whole prior on-hand, then add the new one.

    History keeps both rows; the sum afterwards equals new_qty.
    """
    return [
        LedgerEntry(product_id=product_id, qty=-prior_qty, unit=unit, description=description),
        LedgerEntry(product_id=product_id, qty=new_qty, unit=unit, description=description),
    ]


def product_transaction_count(product_id: int) -> int:
    """Distinct transactions that touched a product's ledger."""
    q = db.session.query(func.count(func.distinct(Stock.transaction_id))).filter(Stock.product_id == product_id)
    return int(q.scalar() or 0)


def verify_all() -> list[dict]:
    """Recompute every product's sum; returns the negative balances."""
    rows = (
        db.session.query(Product.id, Product.name, func.coalesce(func.sum(Stock.qty), 0).label("qty"))
        .outerjoin(Stock, Stock.product_id == Product.id)
        .group_by(Product.id, Product.name)
        .having(func.coalesce(func.sum(Stock.qty), 0) < 0)
        .order_by(Product.id.asc())
        .all()
    )
    return [{"product_id": r.id, "product_name": r.name, "stock_qty": int(r.qty)} for r in rows]
