from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import utcnow
from .base import WireMixin, new_id


class Customer(WireMixin, db.Model):
    """
    Buyer attached to every sale.

    Lifetime aggregates (totalPurchases, totalSpent) are not stored here; they
    are computed from sales on read.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"


class Seller(WireMixin, db.Model):
    """Staff member credited with a sale."""
    __tablename__ = "sellers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Seller id={self.id} name={self.name!r}>"
