from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    Stock is NOT a column here. On-hand quantity is always derived from the
    stock ledger (see models/transactions.py Stock) so the catalog row can
    be edited freely without touching inventory history.

    Products are never hard-deleted while the ledger references them;
    deletion flips is_active (soft delete) and the product disappears from
    listings, checkout and reports of current inventory.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        db.Index("ix_products_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(128), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    # Free-form catalog labels (e.g. "Beverages", "pcs")
    category = db.Column(db.String(128), nullable=True, index=True)
    unit = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "image_url": self.image_url,
            "category": self.category,
            "unit": self.unit,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Price(db.Model):
    """
    Time-stamped (purchase_price, selling_price) pair.

    Rows are insert-only: a price change is a new row and the most recent
    row (created_at, then id) is the current price.
    """
    __tablename__ = "prices"
    __table_args__ = (
        db.Index("ix_prices_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("prices", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "purchase_price": as_float(self.purchase_price),
            "selling_price": as_float(self.selling_price),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
