# Overview: Repository interface shared by the SQL and JSON-file backends, plus typed report results.

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from stockdesk.money import format_money
from stockdesk.validation import ConflictError

# Top-level arrays of the JSON document (file backend, export/import)
COLLECTIONS = ("suppliers", "customers", "sellers", "products", "sales", "saleItems")

SEARCH_LIMIT = 20
RECEIPT_PREFIX = "RCP"


class StorageError(RuntimeError):
    """Disk or database failure. Never a validation or not-found condition."""


class InsufficientStockError(ConflictError):
    """Raised when a sale asks for more units than are on hand."""


def format_receipt_number(year: int, sequence: int) -> str:
    return f"{RECEIPT_PREFIX}-{year}-{sequence:06d}"


def next_receipt_number(year: int, sales_this_year: int, exists: Callable[[str], bool]) -> str:
    """
    count(sales this year) + 1, bumped past any number already taken.

    Best-effort display identifier: uniqueness is guaranteed by the caller
    (unique constraint or the file backend's write lock), not by the count.
    """
    sequence = sales_this_year + 1
    receipt = format_receipt_number(year, sequence)
    while exists(receipt):
        sequence += 1
        receipt = format_receipt_number(year, sequence)
    return receipt


@dataclass(frozen=True)
class SaleHeader:
    customer_id: str
    seller_id: str
    subtotal: Decimal
    discount: Decimal
    discount_type: str
    total: Decimal
    payment_method: str

    def fields(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "seller_id": self.seller_id,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "discount_type": self.discount_type,
            "total": self.total,
            "payment_method": self.payment_method,
        }


@dataclass(frozen=True)
class SaleLine:
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class DashboardStats:
    total_products: int
    todays_sales: Decimal
    low_stock_count: int
    todays_profit: Decimal

    def to_dict(self) -> dict:
        return {
            "totalProducts": self.total_products,
            "todaysSales": format_money(self.todays_sales),
            "lowStockCount": self.low_stock_count,
            "todaysProfit": format_money(self.todays_profit),
        }


@dataclass(frozen=True)
class PartyStats:
    """Lifetime sale count and spend for one customer or seller."""
    count: int
    total: Decimal

    def as_customer(self) -> dict:
        return {"totalPurchases": self.count, "totalSpent": format_money(self.total)}

    def as_seller(self) -> dict:
        return {"totalSales": self.count, "totalRevenue": format_money(self.total)}


@dataclass(frozen=True)
class CategoryStock:
    category: str
    products: int
    value: Decimal
    status: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "products": self.products,
            "value": format_money(self.value),
            "status": self.status,
        }


@dataclass(frozen=True)
class PeriodSales:
    period: str
    transactions: int
    revenue: Decimal
    profit: Decimal

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "transactions": self.transactions,
            "revenue": format_money(self.revenue),
            "profit": format_money(self.profit),
        }


@dataclass(frozen=True)
class TopCustomer:
    customer_id: str
    name: str
    purchases: int
    spent: Decimal

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "name": self.name,
            "purchases": self.purchases,
            "spent": format_money(self.spent),
        }


def category_status(low_stock_products: int) -> str:
    return "low" if low_stock_products > 0 else "healthy"


class Storage(ABC):
    """
    Uniform CRUD + query surface over suppliers, customers, sellers, products,
    sales and sale items.

    Entity rows are returned as wire-shaped dicts (camelCase keys, money as
    2-place strings, ISO-8601 timestamps). Missing ids are reported as None /
    False, never raised. I/O failures raise StorageError.

    Inputs to create/update are validated patches keyed by column attribute
    (see validation.validate_payload).
    """

    name = "abstract"

    # --- generic CRUD ---------------------------------------------------

    @abstractmethod
    def list(self, kind: str) -> list[dict]:
        """All rows of a kind, newest createdAt first."""

    @abstractmethod
    def get(self, kind: str, entity_id: str) -> dict | None:
        ...

    @abstractmethod
    def create(self, kind: str, fields: dict) -> dict:
        ...

    @abstractmethod
    def update(self, kind: str, entity_id: str, fields: dict) -> dict | None:
        ...

    @abstractmethod
    def delete(self, kind: str, entity_id: str) -> bool:
        """
        Suppliers: products pointing at the supplier have supplierId cleared.
        Customers/sellers/products referenced by a sale: ConflictError.
        """

    # --- products ---------------------------------------------------------

    @abstractmethod
    def find_product_by_stock_code(self, stock_code: str) -> dict | None:
        ...

    @abstractmethod
    def search_products(self, query: str) -> list[dict]:
        """Case-insensitive substring on name, stock code or category; at most SEARCH_LIMIT rows."""

    # --- sales ------------------------------------------------------------

    @abstractmethod
    def list_sales(self) -> list[dict]:
        ...

    @abstractmethod
    def get_sale(self, sale_id: str) -> dict | None:
        ...

    @abstractmethod
    def get_sale_with_items(self, sale_id: str) -> dict | None:
        ...

    @abstractmethod
    def recent_sales(self, limit: int) -> list[dict]:
        """Newest sales with customerName/sellerName joined in."""

    @abstractmethod
    def record_sale(self, header: SaleHeader, lines: list[SaleLine]) -> dict:
        """
        Atomically: allocate a receipt number, insert the sale and its items
        (snapshotting product name/stock code/buying price) and decrement
        stock. Either everything is written or nothing is.

        Raises NotFoundError for unknown products and InsufficientStockError
        when any product would go below zero.
        """

    # --- aggregates -------------------------------------------------------

    @abstractmethod
    def dashboard_stats(self, low_stock_threshold: int) -> DashboardStats:
        ...

    @abstractmethod
    def low_stock_products(self, threshold: int) -> list[dict]:
        ...

    @abstractmethod
    def customer_stats(self, customer_id: str) -> PartyStats:
        ...

    @abstractmethod
    def seller_stats(self, seller_id: str) -> PartyStats:
        ...

    @abstractmethod
    def stock_by_category(self, low_stock_threshold: int) -> list[CategoryStock]:
        ...

    @abstractmethod
    def sales_by_period(self, period: str) -> PeriodSales:
        ...

    @abstractmethod
    def top_customers(self, limit: int) -> list[TopCustomer]:
        ...

    # --- maintenance ------------------------------------------------------

    @abstractmethod
    def initialize(self, *, reset: bool = False) -> None:
        """Create tables / the JSON document. reset=True discards all data."""

    @abstractmethod
    def export_document(self) -> dict:
        """Whole store in the JSON document layout (COLLECTIONS)."""

    @abstractmethod
    def load_document(self, document: dict) -> dict:
        """Replace the whole store with a JSON document. Returns row counts."""

    @abstractmethod
    def health(self) -> dict:
        ...
