from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z, to_iso_date

# Domain transaction type -> number prefix
TRANSACTION_TYPES = {
    "sale": "SAL",
    "purchase": "PUR",
    "adjustment": "ADJ",
}


class Transaction(db.Model):
    """
    POS business event header (sale, purchase or adjustment).

    Immutable once committed. Corrections are new transactions, never edits.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("no", name="uq_transactions_no"),
        db.Index("ix_transactions_type_date", "type", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "SAL-20260119-0001"
    no = db.Column(db.String(32), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)

    # Business date (UTC calendar day); the numbering sequence is scoped by it
    date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=True)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=True)
    payment_type = db.Column(db.String(16), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "TransactionItem",
        backref=db.backref("transaction", lazy=True),
        lazy=True,
        order_by="TransactionItem.id",
    )
    stocks = db.relationship(
        "Stock",
        backref=db.backref("transaction", lazy=True),
        lazy=True,
        order_by="Stock.id",
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} no={self.no!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "no": self.no,
            "type": self.type,
            "date": to_iso_date(self.date),
            "description": self.description,
            "total_amount": as_float(self.total_amount),
            "paid_amount": as_float(self.paid_amount),
            "payment_type": self.payment_type,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """
    Line within a transaction.

    price/cost are snapshots taken when the line is written so reports do not
    drift when the catalog price changes later.
    - sale: price = selling price, cost = purchase price
    - purchase: price = cost = purchase price
    - adjustment: qty is the counted on-hand quantity, price/cost unset
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.Index("ix_transaction_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    unit = db.Column(db.String(32), nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=True)
    cost = db.Column(db.Numeric(12, 2), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "unit": self.unit,
            "qty": self.qty,
            "price": as_float(self.price),
            "cost": as_float(self.cost),
            "description": self.description,
        }


class Stock(db.Model):
    """
    Stock ledger entry: a signed quantity delta.

    Append-only. On-hand quantity for a product is SUM(qty) over its rows.
    Sales post negative rows, purchases positive rows, and corrections post
    a negation of the prior on-hand followed by the new quantity.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.Index("ix_stocks_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    # Mirrors Transaction.type
    type = db.Column(db.String(16), nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_id": self.transaction_id,
            "type": self.type,
            "qty": self.qty,
            "unit": self.unit,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionSequence(db.Model):
    """
    Atomic per-(type, date) counters for transaction numbers.

    The counter row is bumped inside the same DB transaction as the header
    insert, so a rolled-back transaction gives its number back.
    """
    __tablename__ = "transaction_sequences"
    __table_args__ = (
        db.UniqueConstraint("type", "seq_date", name="uq_transaction_sequences_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    seq_date = db.Column(db.Date, nullable=False)
    last_value = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "seq_date": to_iso_date(self.seq_date),
            "last_value": self.last_value,
        }
