"""
Checkout Service - priced order lines to a committed sale

States of one attempt:

    VALIDATING -> PRICE_VERIFYING -> STOCK_CHECKING -> PERSISTING -> COMMITTED
                      (any failure) -> ROLLED_BACK

Product rows are locked (in id order) before stock is read, and the stock
check, the sale header, the items and the negative ledger rows all happen
inside one database transaction. Two concurrent checkouts of the last unit
therefore serialize: the second one sees the first one's ledger row.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from flask import current_app

from ..errors import InsufficientStock, PosError, PriceMismatch, ValidationError
from ..extensions import db
from ..validation import OrderLine, merge_order_lines, parse_money
from .concurrency import begin_write, run_with_retry
from .ledger_service import (
    LedgerEntry,
    add_transaction_item,
    assert_non_negative,
    create_transaction_header,
    post_ledger_entries,
    stock_levels,
)
from .products_service import current_prices, get_active_products


class CheckoutState(str, Enum):
    VALIDATING = "VALIDATING"
    PRICE_VERIFYING = "PRICE_VERIFYING"
    STOCK_CHECKING = "STOCK_CHECKING"
    PERSISTING = "PERSISTING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass(frozen=True)
class CheckoutResult:
    transaction_id: int
    transaction_no: str
    total_price: float
    payment_method: str

    def to_dict(self) -> dict:
        return {
            "transactionId": self.transaction_id,
            "transactionNo": self.transaction_no,
            "totalPrice": self.total_price,
            "paymentMethod": self.payment_method,
            "message": "Transaction completed successfully",
        }


def payment_methods() -> list[str]:
    return list(current_app.config["PAYMENT_METHODS"])


def qris_path() -> str:
    return current_app.config["QRIS_IMAGE_PATH"]


def _price_lines(lines: list[OrderLine], products, prices) -> tuple[list[dict], Decimal]:
    """Per-line subtotals from authoritative selling prices."""
    priced = []
    total = Decimal("0.00")
    for line in lines:
        product = products[line.product_id]
        price = prices.get(line.product_id)
        if price is None:
            raise ValidationError(
                f"Product {product.name} has no selling price",
                {"product_id": product.id},
            )
        subtotal = price.selling_price * line.qty
        total += subtotal
        priced.append({
            "id": product.id,
            "name": product.name,
            "barcode": product.barcode,
            "unit": product.unit,
            "qty": line.qty,
            "price": price.selling_price,
            "cost": price.purchase_price,
            "subtotal": subtotal,
        })
    return priced, total


def review_order(lines: list[OrderLine]) -> dict:
    """Read-only preview: same validation and pricing, no stock check, no writes."""
    lines = merge_order_lines(lines)
    if not lines:
        raise ValidationError("At least one product is required")
    products = get_active_products([line.product_id for line in lines])
    priced, total = _price_lines(lines, products, current_prices(products))
    return {
        "totalPrice": float(total),
        "paymentMethods": payment_methods(),
        "products": [
            {
                "id": p["id"],
                "name": p["name"],
                "barcode": p["barcode"],
                "qty": p["qty"],
                "price": float(p["price"]),
                "subtotal": float(p["subtotal"]),
            }
            for p in priced
        ],
    }


def checkout(lines: list[OrderLine], payment_method: str, total_price, actor_id: int) -> CheckoutResult:
    """
    Validate, price, stock-check and persist a sale atomically.

    Raises ValidationError, NotFound, PriceMismatch or InsufficientStock;
    on any failure nothing of the attempt is left in the database.
    """
    state = CheckoutState.VALIDATING
    tolerance = Decimal(str(current_app.config["PRICE_TOLERANCE"]))
    lines = merge_order_lines(lines)

    def _op() -> CheckoutResult:
        nonlocal state
        state = CheckoutState.VALIDATING
        if not lines:
            raise ValidationError("At least one product is required")
        if payment_method not in payment_methods():
            raise ValidationError(
                f"payment_method must be one of: {', '.join(payment_methods())}",
                {"allowed": payment_methods()},
            )
        submitted = parse_money(total_price, "total_price")

        begin_write()
        products = get_active_products([line.product_id for line in lines], lock=True)

        state = CheckoutState.PRICE_VERIFYING
        priced, computed = _price_lines(lines, products, current_prices(products))
        if abs(computed - submitted) > tolerance:
            raise PriceMismatch(
                "Total price mismatch",
                {"submitted": float(submitted), "computed": float(computed)},
            )

        state = CheckoutState.STOCK_CHECKING
        levels = stock_levels(products)
        for line in lines:
            on_hand = levels[line.product_id]
            if on_hand < line.qty:
                name = products[line.product_id].name
                raise InsufficientStock(
                    f"Product {name} has insufficient stock",
                    {"product_id": line.product_id, "requested_quantity": line.qty, "on_hand": on_hand},
                )

        state = CheckoutState.PERSISTING
        txn = create_transaction_header(
            "sale",
            actor_id=actor_id,
            description=f"Sale transaction - {payment_method}",
            total_amount=submitted,
            paid_amount=submitted,
            payment_type=payment_method,
        )
        item_description = f"Sale transaction {txn.no}"
        entries = []
        for p in priced:
            add_transaction_item(
                txn,
                product_id=p["id"],
                qty=p["qty"],
                unit=p["unit"],
                price=p["price"],
                cost=p["cost"],
                description=item_description,
            )
            entries.append(LedgerEntry(product_id=p["id"], qty=-p["qty"], unit=p["unit"], description=item_description))
        post_ledger_entries(txn, entries, actor_id)
        assert_non_negative(products)

        db.session.commit()
        state = CheckoutState.COMMITTED
        return CheckoutResult(
            transaction_id=txn.id,
            transaction_no=txn.no,
            total_price=float(submitted),
            payment_method=payment_method,
        )

    try:
        return run_with_retry(_op)
    except PosError as exc:
        db.session.rollback()
        current_app.logger.info(
            "Checkout rolled back in %s: %s (%s)", state.value, exc.classification, exc.message,
        )
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Checkout rolled back in %s", state.value)
        raise
