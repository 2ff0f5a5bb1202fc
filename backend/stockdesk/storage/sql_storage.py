# Overview: Relational backend; one table per entity kind through Flask-SQLAlchemy models.

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import case, func, or_, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import DOCUMENT_MODELS, ENTITY_MODELS, Customer, Product, Sale, SaleItem, Seller, Supplier
from ..money import to_money
from ..services.concurrency import lock_for_update, run_with_retry
from ..time_utils import period_start, start_of_today, start_of_year, utcnow
from ..validation import ConflictError, NotFoundError
from .base import (
    COLLECTIONS,
    SEARCH_LIMIT,
    CategoryStock,
    DashboardStats,
    InsufficientStockError,
    PartyStats,
    PeriodSales,
    SaleHeader,
    SaleLine,
    Storage,
    StorageError,
    TopCustomer,
    category_status,
    next_receipt_number,
)

logger = logging.getLogger(__name__)

# kind -> (model, column) of rows that block deleting a referenced entity
RESTRICTING_REFERENCES = {
    "customers": (Sale, Sale.customer_id, "sales"),
    "sellers": (Sale, Sale.seller_id, "sales"),
    "products": (SaleItem, SaleItem.product_id, "sale items"),
}


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlStorage(Storage):
    """
    Storage over the Flask-SQLAlchemy session.

    Must be used inside an application context. Every public mutation commits
    (or rolls back) its own transaction.
    """

    name = "sql"

    @contextmanager
    def _guard(self):
        try:
            yield
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Integrity violation: %s", exc.orig)
            raise ConflictError("Conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database operation failed")
            raise StorageError("Database error") from exc

    @staticmethod
    def _model(kind: str):
        try:
            return ENTITY_MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {kind}") from None

    def _stock_code_taken(self, stock_code: str, exclude_id: str | None = None) -> bool:
        q = db.session.query(Product.id).filter(Product.stock_code == stock_code)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        return q.first() is not None

    # --- generic CRUD ---------------------------------------------------

    def _list_rows(self, model) -> list[dict]:
        with self._guard():
            rows = db.session.query(model).order_by(model.created_at.desc()).all()
            return [r.to_dict() for r in rows]

    def list(self, kind: str) -> list[dict]:
        return self._list_rows(self._model(kind))

    def get(self, kind: str, entity_id: str) -> dict | None:
        model = self._model(kind)
        with self._guard():
            row = db.session.get(model, entity_id)
            return row.to_dict() if row else None

    def create(self, kind: str, fields: dict) -> dict:
        model = self._model(kind)
        with self._guard():
            if model is Product and self._stock_code_taken(fields.get("stock_code")):
                raise ConflictError("Stock code already exists.")

            row = model(**fields)
            db.session.add(row)
            db.session.commit()
            return row.to_dict()

    def update(self, kind: str, entity_id: str, fields: dict) -> dict | None:
        model = self._model(kind)
        with self._guard():
            row = db.session.get(model, entity_id)
            if row is None:
                return None

            if model is Product and "stock_code" in fields and fields["stock_code"] != row.stock_code:
                if self._stock_code_taken(fields["stock_code"], exclude_id=row.id):
                    raise ConflictError("Stock code already exists.")

            for k, v in fields.items():
                setattr(row, k, v)
            db.session.commit()
            return row.to_dict()

    def delete(self, kind: str, entity_id: str) -> bool:
        model = self._model(kind)
        with self._guard():
            row = db.session.get(model, entity_id)
            if row is None:
                return False

            restricting = RESTRICTING_REFERENCES.get(kind)
            if restricting:
                ref_model, ref_col, label = restricting
                in_use = db.session.query(func.count(ref_model.id)).filter(ref_col == entity_id).scalar()
                if in_use:
                    raise ConflictError(
                        f"Cannot delete: referenced by {in_use} {label}",
                        details={"references": int(in_use)},
                    )

            if model is Supplier:
                db.session.execute(
                    update(Product)
                    .where(Product.supplier_id == entity_id)
                    .values(supplier_id=None)
                )

            db.session.delete(row)
            db.session.commit()
            return True

    # --- products ---------------------------------------------------------

    def find_product_by_stock_code(self, stock_code: str) -> dict | None:
        with self._guard():
            row = db.session.query(Product).filter(Product.stock_code == stock_code).first()
            return row.to_dict() if row else None

    def search_products(self, query: str) -> list[dict]:
        pattern = _like_pattern(query)
        with self._guard():
            rows = (
                db.session.query(Product)
                .filter(
                    or_(
                        Product.name.ilike(pattern, escape="\\"),
                        Product.stock_code.ilike(pattern, escape="\\"),
                        Product.category.ilike(pattern, escape="\\"),
                    )
                )
                .limit(SEARCH_LIMIT)
                .all()
            )
            return [r.to_dict() for r in rows]

    # --- sales ------------------------------------------------------------

    def list_sales(self) -> list[dict]:
        return self._list_rows(Sale)

    def get_sale(self, sale_id: str) -> dict | None:
        with self._guard():
            sale = db.session.get(Sale, sale_id)
            return sale.to_dict() if sale else None

    def get_sale_with_items(self, sale_id: str) -> dict | None:
        with self._guard():
            sale = db.session.get(Sale, sale_id)
            if sale is None:
                return None
            items = (
                db.session.query(SaleItem)
                .filter(SaleItem.sale_id == sale_id)
                .order_by(SaleItem.line_no.asc())
                .all()
            )
            return {"sale": sale.to_dict(), "items": [i.to_dict() for i in items]}

    def recent_sales(self, limit: int) -> list[dict]:
        with self._guard():
            rows = (
                db.session.query(Sale, Customer.name, Seller.name)
                .outerjoin(Customer, Customer.id == Sale.customer_id)
                .outerjoin(Seller, Seller.id == Sale.seller_id)
                .order_by(Sale.created_at.desc())
                .limit(limit)
                .all()
            )
            return [
                {**sale.to_dict(), "customerName": customer_name or "", "sellerName": seller_name or ""}
                for sale, customer_name, seller_name in rows
            ]

    def _write_sale(self, header: SaleHeader, lines: list[SaleLine]) -> dict:
        year, year_start = start_of_year()
        sales_this_year = (
            db.session.query(func.count(Sale.id)).filter(Sale.created_at >= year_start).scalar() or 0
        )
        receipt = next_receipt_number(
            year,
            sales_this_year,
            exists=lambda r: db.session.query(Sale.id).filter(Sale.receipt_number == r).first() is not None,
        )

        now = utcnow()
        sale = Sale(receipt_number=receipt, created_at=now, **header.fields())
        db.session.add(sale)
        db.session.flush()

        items = []
        for line_no, line in enumerate(lines, start=1):
            product = lock_for_update(db.session.query(Product).filter(Product.id == line.product_id)).first()
            if product is None:
                raise NotFoundError(f"Product not found: {line.product_id}")

            # Conditional decrement: a single statement, so concurrent sales
            # cannot both take the last units.
            result = db.session.execute(
                update(Product)
                .where(Product.id == line.product_id, Product.quantity >= line.quantity)
                .values(quantity=Product.quantity - line.quantity)
            )
            if result.rowcount != 1:
                db.session.refresh(product)
                raise InsufficientStockError(
                    f"Insufficient stock for {product.stock_code}",
                    details={
                        "productId": product.id,
                        "stockCode": product.stock_code,
                        "requested": line.quantity,
                        "available": product.quantity,
                    },
                )

            item = SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                line_no=line_no,
                product_name=product.name,
                stock_code=product.stock_code,
                quantity=line.quantity,
                unit_price=line.unit_price,
                buying_price=product.buying_price,
                subtotal=line.subtotal,
                created_at=now,
            )
            db.session.add(item)
            items.append(item)

        db.session.flush()
        return {"sale": sale.to_dict(), "items": [i.to_dict() for i in items]}

    def record_sale(self, header: SaleHeader, lines: list[SaleLine]) -> dict:
        def _op():
            try:
                result = self._write_sale(header, lines)
                db.session.commit()
                return result
            except Exception:
                db.session.rollback()
                raise

        with self._guard():
            # IntegrityError here means another writer took our receipt number
            return run_with_retry(_op, retry_on=(IntegrityError,))

    # --- aggregates -------------------------------------------------------

    def _profit_since(self, start) -> Decimal:
        margin = (SaleItem.unit_price - SaleItem.buying_price) * SaleItem.quantity
        q = db.session.query(func.coalesce(func.sum(margin), 0)).join(Sale, Sale.id == SaleItem.sale_id)
        if start is not None:
            q = q.filter(Sale.created_at >= start)
        return to_money(q.scalar())

    def dashboard_stats(self, low_stock_threshold: int) -> DashboardStats:
        today = start_of_today()
        with self._guard():
            total_products = db.session.query(func.count(Product.id)).scalar() or 0
            todays_sales = (
                db.session.query(func.coalesce(func.sum(Sale.total), 0))
                .filter(Sale.created_at >= today)
                .scalar()
            )
            low_stock_count = (
                db.session.query(func.count(Product.id))
                .filter(Product.quantity < low_stock_threshold)
                .scalar()
                or 0
            )
            return DashboardStats(
                total_products=int(total_products),
                todays_sales=to_money(todays_sales),
                low_stock_count=int(low_stock_count),
                todays_profit=self._profit_since(today),
            )

    def low_stock_products(self, threshold: int) -> list[dict]:
        with self._guard():
            rows = (
                db.session.query(Product)
                .filter(Product.quantity < threshold)
                .order_by(Product.quantity.asc())
                .all()
            )
            return [r.to_dict() for r in rows]

    def _party_stats(self, column, party_id: str) -> PartyStats:
        with self._guard():
            count, total = (
                db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
                .filter(column == party_id)
                .one()
            )
            return PartyStats(count=int(count or 0), total=to_money(total))

    def customer_stats(self, customer_id: str) -> PartyStats:
        return self._party_stats(Sale.customer_id, customer_id)

    def seller_stats(self, seller_id: str) -> PartyStats:
        return self._party_stats(Sale.seller_id, seller_id)

    def stock_by_category(self, low_stock_threshold: int) -> list[CategoryStock]:
        with self._guard():
            rows = (
                db.session.query(
                    Product.category,
                    func.count(Product.id).label("product_count"),
                    func.coalesce(func.sum(Product.quantity * Product.selling_price), 0).label("total_value"),
                    func.sum(case((Product.quantity < low_stock_threshold, 1), else_=0)).label("low_count"),
                )
                .group_by(Product.category)
                .order_by(Product.category.asc())
                .all()
            )
            return [
                CategoryStock(
                    category=row.category,
                    products=int(row.product_count),
                    value=to_money(row.total_value),
                    status=category_status(int(row.low_count or 0)),
                )
                for row in rows
            ]

    def sales_by_period(self, period: str) -> PeriodSales:
        start = period_start(period)
        with self._guard():
            q = db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
            if start is not None:
                q = q.filter(Sale.created_at >= start)
            transactions, revenue = q.one()
            return PeriodSales(
                period=period,
                transactions=int(transactions or 0),
                revenue=to_money(revenue),
                profit=self._profit_since(start),
            )

    def top_customers(self, limit: int) -> list[TopCustomer]:
        spent = func.coalesce(func.sum(Sale.total), 0)
        with self._guard():
            rows = (
                db.session.query(
                    Sale.customer_id,
                    Customer.name,
                    func.count(Sale.id).label("purchases"),
                    spent.label("spent"),
                )
                .join(Customer, Customer.id == Sale.customer_id)
                .group_by(Sale.customer_id, Customer.name)
                .order_by(spent.desc())
                .limit(limit)
                .all()
            )
            return [
                TopCustomer(
                    customer_id=row.customer_id,
                    name=row.name,
                    purchases=int(row.purchases),
                    spent=to_money(row.spent),
                )
                for row in rows
            ]

    # --- maintenance ------------------------------------------------------

    def initialize(self, *, reset: bool = False) -> None:
        with self._guard():
            if reset:
                db.drop_all()
            db.create_all()

    def export_document(self) -> dict:
        with self._guard():
            return {
                key: [r.to_dict() for r in db.session.query(model).order_by(model.created_at.asc()).all()]
                for key, model in DOCUMENT_MODELS.items()
            }

    def load_document(self, document: dict) -> dict:
        counts = {}
        with self._guard():
            # Children first on delete, parents first on insert
            for key in reversed(COLLECTIONS):
                db.session.query(DOCUMENT_MODELS[key]).delete()
            db.session.expunge_all()
            for key in COLLECTIONS:
                model = DOCUMENT_MODELS[key]
                rows = document.get(key) or []
                for row in rows:
                    db.session.add(model(**model.from_wire(row)))
                db.session.flush()
                counts[key] = len(rows)
            db.session.commit()
        return counts

    def health(self) -> dict:
        with self._guard():
            db.session.execute(text("SELECT 1"))
            return {
                "backend": self.name,
                "products": db.session.query(func.count(Product.id)).scalar(),
                "sales": db.session.query(func.count(Sale.id)).scalar(),
            }
