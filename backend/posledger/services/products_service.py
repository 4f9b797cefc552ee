# backend/posledger/services/products_service.py
"""
Catalog Service

Product master data, insert-only price history and soft delete. Stock is
never edited in place: creating a product seeds its stock with an
"adjustment" transaction, and editing stock_qty posts another adjustment
that cancels the prior on-hand and applies the new quantity.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Price, Product, Stock, Transaction
from ..validation import ModelValidationPolicy, parse_int, parse_money, validate_payload
from .concurrency import atomic, lock_for_update
from .ledger_service import (
    LedgerEntry,
    add_transaction_item,
    correction_entries,
    create_transaction_header,
    current_stock,
    post_ledger_entries,
    product_transaction_count,
    stock_levels,
    stock_levels_subquery,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "barcode", "image_url", "category", "unit"},
    required_on_create={"name"},
    extra_fields={"stock_qty", "purchase_price", "selling_price"},
    aliases={"category_id": "category", "unit_id": "unit"},
)

PRODUCT_SORT_FIELDS = ("name", "barcode")


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_POLICY.writable_fields:
            continue
        setattr(p, k, v)


def current_prices(product_ids) -> dict[int, Price]:
    """Latest price row per product (created_at, then id)."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}
    rows = (
        db.session.query(Price)
        .filter(Price.product_id.in_(ids))
        .order_by(Price.product_id.asc(), Price.created_at.desc(), Price.id.desc())
        .all()
    )
    latest: dict[int, Price] = {}
    for price in rows:
        latest.setdefault(price.product_id, price)
    return latest


def get_active_products(product_ids, *, lock: bool = False) -> dict[int, Product]:
    """
    Load active products by id, in id order. lock=True takes row locks
    (always in ascending id order so concurrent writers cannot deadlock).

    Raises NotFound naming every missing or inactive id.
    """
    ids = sorted(set(product_ids))
    query = db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
    if lock:
        query = lock_for_update(query)
    found = {p.id: p for p in query.all() if p.is_active}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        if len(missing) == 1:
            raise NotFound(f"Product with ID {missing[0]} not found", {"product_ids": missing})
        raise NotFound("Some products not found", {"product_ids": missing})
    return found


def _serialize(product: Product, stock_qty: int, price: Price | None) -> dict:
    data = product.to_dict()
    data["stock_qty"] = stock_qty
    data["purchase_price"] = float(price.purchase_price) if price else None
    data["selling_price"] = float(price.selling_price) if price else None
    return data


def _parse_prices(extras: dict, existing: Price | None = None) -> tuple[Decimal, Decimal] | None:
    """
    None when no price was given. On create both prices are required
    together; on update a missing one is taken from the current price.
    """
    has_purchase = extras.get("purchase_price") is not None
    has_selling = extras.get("selling_price") is not None
    if not has_purchase and not has_selling:
        return None

    if has_purchase:
        purchase = parse_money(extras["purchase_price"], "purchase_price")
    elif existing is not None:
        purchase = existing.purchase_price
    else:
        raise ValidationError("purchase_price and selling_price must be provided together")

    if has_selling:
        selling = parse_money(extras["selling_price"], "selling_price")
    elif existing is not None:
        selling = existing.selling_price
    else:
        raise ValidationError("purchase_price and selling_price must be provided together")

    return purchase, selling


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    sort_by: str = "name",
    sort_order: str = "ASC",
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Active products with stock_qty and current prices, paginated.

    search matches name or barcode (case-insensitive substring).
    """
    stock_sq = stock_levels_subquery()
    stock_col = func.coalesce(stock_sq.c.stock_qty, 0)

    query = (
        db.session.query(Product, stock_col.label("stock_qty"))
        .outerjoin(stock_sq, stock_sq.c.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                func.lower(Product.name).like(pattern),
                func.lower(func.coalesce(Product.barcode, "")).like(pattern),
            )
        )
    if category:
        query = query.filter(func.lower(Product.category) == category.strip().lower())

    sort_col = Product.barcode if sort_by == "barcode" else Product.name
    if sort_order == "DESC":
        query = query.order_by(sort_col.desc(), Product.id.desc())
    else:
        query = query.order_by(sort_col.asc(), Product.id.asc())

    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    prices = current_prices(p.id for p, _ in rows)

    return {
        "data": [_serialize(p, int(qty or 0), prices.get(p.id)) for p, qty in rows],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit if total else 0,
        },
    }


def get_product(product_id: int) -> dict:
    """
    Active product with stock_qty, current prices, stock history (newest
    first, with the owning transaction) and price history.
    """
    product = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
    if product is None:
        raise NotFound(f"Product with ID {product_id} not found")

    history_rows = (
        db.session.query(Stock, Transaction)
        .join(Transaction, Transaction.id == Stock.transaction_id)
        .filter(Stock.product_id == product_id)
        .order_by(Stock.created_at.desc(), Stock.id.desc())
        .all()
    )
    prices = (
        db.session.query(Price)
        .filter_by(product_id=product_id)
        .order_by(Price.created_at.desc(), Price.id.desc())
        .all()
    )

    data = _serialize(product, current_stock(product_id), prices[0] if prices else None)
    data["stock_history"] = [
        {
            **stock.to_dict(),
            "transaction_no": txn.no,
            "transaction_type": txn.type,
            "transaction_date": txn.date.isoformat(),
        }
        for stock, txn in history_rows
    ]
    data["price_history"] = [p.to_dict() for p in prices]
    return data


def create_product(data: dict, actor_id: int) -> dict:
    """
    Create a product, its first price row (when both prices are given) and
    the initial stock adjustment, in one atomic unit.
    """
    patch, extras = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    stock_qty = 0
    if extras.get("stock_qty") is not None:
        stock_qty = parse_int(extras["stock_qty"], "stock_qty", minimum=1)
    prices = _parse_prices(extras)

    def _op() -> int:
        product = Product(**patch, is_active=True, created_by=actor_id, updated_by=actor_id)
        db.session.add(product)
        db.session.flush()

        if prices:
            db.session.add(Price(
                product_id=product.id,
                purchase_price=prices[0],
                selling_price=prices[1],
                created_by=actor_id,
            ))

        description = f"Initial stock for {product.name}"
        txn = create_transaction_header("adjustment", actor_id=actor_id, description=description)
        add_transaction_item(txn, product_id=product.id, qty=stock_qty, unit=product.unit, description=description)
        post_ledger_entries(
            txn,
            [LedgerEntry(product_id=product.id, qty=stock_qty, unit=product.unit, description=description)],
            actor_id,
        )
        return product.id

    product_id = atomic(_op)
    return get_product(product_id)


def update_product(product_id: int, data: dict, actor_id: int) -> dict:
    """
    Partial update. A new price row is written when a price is given; a
    stock_qty posts an adjustment to that counted quantity.
    """
    patch, extras = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    new_qty = None
    if extras.get("stock_qty") is not None:
        new_qty = parse_int(extras["stock_qty"], "stock_qty", minimum=0)

    def _op() -> int:
        product = get_active_products([product_id], lock=True)[product_id]
        apply_product_patch(product, patch)
        product.updated_by = actor_id

        prices = _parse_prices(extras, current_prices([product_id]).get(product_id))
        if prices:
            db.session.add(Price(
                product_id=product.id,
                purchase_price=prices[0],
                selling_price=prices[1],
                created_by=actor_id,
            ))

        if new_qty is not None:
            prior = current_stock(product.id)
            description = f"Edit stock for {product.name}"
            txn = create_transaction_header("adjustment", actor_id=actor_id, description=description)
            add_transaction_item(txn, product_id=product.id, qty=new_qty, unit=product.unit, description=description)
            post_ledger_entries(
                txn,
                correction_entries(product.id, prior, new_qty, unit=product.unit, description=description),
                actor_id,
            )

        db.session.flush()
        return product.id

    atomic(_op)
    return get_product(product_id)


def _check_deletable(product: Product) -> None:
    if product_transaction_count(product.id) > 1:
        raise ValidationError(
            "Product is used in transaction",
            {"product_id": product.id, "product_name": product.name},
        )


def delete_product(product_id: int, actor_id: int) -> dict:
    """Soft delete. Returns the product as it was before deletion."""
    before = get_product(product_id)

    def _op():
        product = get_active_products([product_id], lock=True)[product_id]
        _check_deletable(product)
        product.is_active = False
        product.updated_by = actor_id

    atomic(_op)
    return before


def delete_products(product_ids: list[int], actor_id: int) -> list[dict]:
    """All-or-nothing bulk soft delete."""
    def _op() -> list[dict]:
        products = get_active_products(product_ids, lock=True)
        levels = stock_levels(products)
        prices = current_prices(products)
        deleted = []
        for pid in sorted(products):
            product = products[pid]
            _check_deletable(product)
            deleted.append(_serialize(product, levels[pid], prices.get(pid)))
            product.is_active = False
            product.updated_by = actor_id
        return deleted

    return atomic(_op)
