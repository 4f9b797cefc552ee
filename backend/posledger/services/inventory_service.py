# Overview: Purchase and adjustment transactions, plus transaction listing and detail.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..validation import OrderLine, parse_money
from .concurrency import atomic
from .ledger_service import (
    LedgerEntry,
    add_transaction_item,
    assert_non_negative,
    correction_entries,
    create_transaction_header,
    post_ledger_entries,
    stock_levels,
)
from .products_service import current_prices, get_active_products
"""
Inventory transaction semantics (authoritative)

- purchase: every line adds +qty to the ledger. The item snapshots the
  product's current purchase price as both price and cost. The header
  total defaults to SUM(qty * purchase price); lines without a purchase
  price contribute 0.
- adjustment: every line carries the COUNTED on-hand quantity. The ledger
  gets -prior then +counted for each product, so on-hand equals the count
  afterwards and no prior row is touched.
- Header, items and ledger rows are one atomic unit.
"""

TRANSACTION_SORT_FIELDS = ("no", "product_name", "type", "date", "created_at")


def purchase_transaction(
    items: list[OrderLine],
    actor_id: int,
    description: str | None = None,
    total_amount=None,
) -> dict:
    if not items:
        raise ValidationError("At least one item is required")
    explicit_total = parse_money(total_amount, "total_amount") if total_amount is not None else None

    def _op() -> int:
        products = get_active_products([line.product_id for line in items], lock=True)
        prices = current_prices(products)

        computed = Decimal("0.00")
        for line in items:
            price = prices.get(line.product_id)
            if price is not None:
                computed += price.purchase_price * line.qty

        txn = create_transaction_header(
            "purchase",
            actor_id=actor_id,
            description=description or "Purchase transaction",
            total_amount=explicit_total if explicit_total is not None else computed,
        )
        item_description = f"Purchase transaction {txn.no}"
        entries = []
        for line in items:
            product = products[line.product_id]
            price = prices.get(line.product_id)
            unit_cost = price.purchase_price if price is not None else None
            add_transaction_item(
                txn,
                product_id=product.id,
                qty=line.qty,
                unit=product.unit,
                price=unit_cost,
                cost=unit_cost,
                description=item_description,
            )
            entries.append(LedgerEntry(
                product_id=product.id, qty=line.qty, unit=product.unit, description=item_description,
            ))
        post_ledger_entries(txn, entries, actor_id)
        return txn.id

    return get_transaction(atomic(_op))


def adjustment_transaction(items: list[OrderLine], description: str, actor_id: int) -> dict:
    if not items:
        raise ValidationError("At least one item is required")
    if not description or not str(description).strip():
        raise ValidationError("Description cannot be empty")
    description = str(description).strip()

    def _op() -> int:
        products = get_active_products([line.product_id for line in items], lock=True)
        prior = stock_levels(products)

        txn = create_transaction_header("adjustment", actor_id=actor_id, description=description)
        entries = []
        for line in items:
            product = products[line.product_id]
            add_transaction_item(
                txn,
                product_id=product.id,
                qty=line.qty,
                unit=product.unit,
                description=description,
            )
            entries.extend(correction_entries(
                product.id, prior[product.id], line.qty, unit=product.unit, description=description,
            ))
        post_ledger_entries(txn, entries, actor_id)
        assert_non_negative(products)
        return txn.id

    return get_transaction(atomic(_op))


def _product_names(transaction_ids: list[int]) -> dict[int, str]:
    if not transaction_ids:
        return {}
    rows = (
        db.session.query(TransactionItem.transaction_id, Product.name)
        .join(Product, Product.id == TransactionItem.product_id)
        .filter(TransactionItem.transaction_id.in_(transaction_ids))
        .order_by(TransactionItem.transaction_id.asc(), TransactionItem.id.asc())
        .all()
    )
    names: dict[int, list[str]] = {}
    for txn_id, name in rows:
        bucket = names.setdefault(txn_id, [])
        if name not in bucket:
            bucket.append(name)
    return {txn_id: ", ".join(bucket) for txn_id, bucket in names.items()}


def list_transactions(
    *,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "DESC",
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Transactions with their comma-joined product names, paginated.

    search matches the number, the type or any item's product name.
    product_name sorting uses the alphabetically first product.
    """
    first_name = func.min(Product.name)
    query = (
        db.session.query(Transaction, first_name.label("product_name"))
        .outerjoin(TransactionItem, TransactionItem.transaction_id == Transaction.id)
        .outerjoin(Product, Product.id == TransactionItem.product_id)
        .group_by(Transaction.id)
    )

    if search:
        pattern = f"%{search.strip().lower()}%"
        matching_items = (
            db.session.query(TransactionItem.transaction_id)
            .join(Product, Product.id == TransactionItem.product_id)
            .filter(func.lower(Product.name).like(pattern))
        )
        query = query.filter(
            db.or_(
                func.lower(Transaction.no).like(pattern),
                func.lower(Transaction.type).like(pattern),
                Transaction.id.in_(matching_items),
            )
        )

    sort_col = {
        "no": Transaction.no,
        "product_name": first_name,
        "type": Transaction.type,
        "date": Transaction.date,
        "created_at": Transaction.created_at,
    }.get(sort_by, Transaction.created_at)
    if sort_order == "ASC":
        query = query.order_by(sort_col.asc(), Transaction.id.asc())
    else:
        query = query.order_by(sort_col.desc(), Transaction.id.desc())

    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    names = _product_names([txn.id for txn, _ in rows])

    data = []
    for txn, _ in rows:
        row = txn.to_dict()
        row["product_name"] = names.get(txn.id, "")
        data.append(row)

    return {
        "data": data,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit if total else 0,
        },
    }


def get_transaction(transaction_id: int) -> dict:
    txn = db.session.query(Transaction).filter_by(id=transaction_id).first()
    if txn is None:
        raise NotFound(f"Transaction with ID {transaction_id} not found")

    data = txn.to_dict()
    data["items"] = [item.to_dict() for item in txn.items]
    data["stocks"] = [row.to_dict() for row in txn.stocks]
    return data
