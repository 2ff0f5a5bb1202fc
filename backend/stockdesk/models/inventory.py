from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import utcnow
from .base import WireMixin, new_id


class Supplier(WireMixin, db.Model):
    """Vendor that products are bought from. Referenced by Product (optional)."""
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"


class Product(WireMixin, db.Model):
    """
    Product master data.

    stock_code is the human-assigned code printed on shelves and receipts; it
    is globally unique and distinct from the opaque id.

    Prices are NUMERIC(10, 2) and travel as 2-place strings on the wire.
    quantity is on-hand stock and may never go below zero (CHECK constraint
    plus the conditional decrement in SqlStorage.record_sale).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.Index("ix_products_category", "category"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    stock_code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)

    buying_price = db.Column(db.Numeric(10, 2), nullable=False)
    selling_price = db.Column(db.Numeric(10, 2), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} stock_code={self.stock_code!r} qty={self.quantity}>"
