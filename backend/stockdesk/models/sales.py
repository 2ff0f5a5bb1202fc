from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import utcnow
from .base import WireMixin, new_id

DISCOUNT_TYPES = ("percentage", "fixed")
PAYMENT_METHODS = ("cash", "card", "mobile", "due")


class Sale(WireMixin, db.Model):
    """
    Sale header. Created together with its items in one transaction and never
    updated or deleted afterwards.

    receipt_number is a display identifier (RCP-<year>-<NNNNNN>); the unique
    constraint is what guarantees no two sales share one.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        db.Index("ix_sales_seller_created", "seller_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    receipt_number = db.Column(db.String(32), nullable=False, unique=True)

    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=False)
    seller_id = db.Column(db.String(36), db.ForeignKey("sellers.id"), nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    total = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    seller = db.relationship("Seller", backref=db.backref("sales", lazy=True))

    def __repr__(self) -> str:
        return f"<Sale id={self.id} receipt={self.receipt_number!r} total={self.total}>"


class SaleItem(WireMixin, db.Model):
    """
    Line item on a sale.

    product_name, stock_code and buying_price are copied from the product at
    sale time so later product edits do not rewrite history.
    """
    __tablename__ = "sale_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False, default=1)

    product_name = db.Column(db.String(255), nullable=False)
    stock_code = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    buying_price = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True))
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return f"<SaleItem id={self.id} sale_id={self.sale_id} product_id={self.product_id} qty={self.quantity}>"
