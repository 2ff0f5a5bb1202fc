# Overview: Single-process backend keeping every entity in memory and rewriting one JSON file per mutation.

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

from ..models import DOCUMENT_MODELS, ENTITY_MODELS, Product, Sale, SaleItem
from ..models.base import new_id
from ..money import ZERO, to_money
from ..time_utils import parse_iso_datetime, period_start, start_of_today, start_of_year, to_utc_z, utcnow
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

# kind -> (collection, field) of rows that block deleting a referenced entity
RESTRICTING_REFERENCES = {
    "customers": ("sales", "customerId", "sales"),
    "sellers": ("sales", "sellerId", "sales"),
    "products": ("saleItems", "productId", "sale items"),
}

# kind -> (collection, field) cleared when the referenced entity is deleted
NULLIFIED_REFERENCES = {
    "suppliers": ("products", "supplierId"),
}


def empty_document() -> dict:
    return {key: [] for key in COLLECTIONS}


def _created(row: dict):
    return parse_iso_datetime(row.get("createdAt"))


def _newest_first(rows: list[dict]) -> list[dict]:
    # Reversed insertion order first so equal timestamps still list newest first
    return sorted(reversed(rows), key=lambda r: r.get("createdAt") or "", reverse=True)


def _since(rows: list[dict], start) -> list[dict]:
    if start is None:
        return list(rows)
    return [r for r in rows if _created(r) >= start]


def _money(row: dict, key: str) -> Decimal:
    return to_money(row.get(key) or 0)


def _new_record(model, fields: dict) -> dict:
    """Full wire row for a model: supplied fields, column defaults, id and createdAt."""
    values = {}
    for col in model.__mapper__.columns:
        if col.key in fields:
            values[col.key] = fields[col.key]
        elif col.default is not None and col.default.is_scalar:
            values[col.key] = col.default.arg
        else:
            values[col.key] = None
    values["id"] = new_id()
    values["created_at"] = fields.get("created_at") or utcnow()
    return model.wire_fields(values)


class FileStorage(Storage):
    """
    In-memory mirror of the whole store, loaded once from a JSON document and
    written back in full after every mutation.

    All mutations go through _mutation(): under a process-wide lock the
    change is applied to a working copy, the copy is flushed to disk, and
    only then does it replace the live state. A failure anywhere (validation,
    insufficient stock, disk) leaves both memory and disk untouched.

    Single-process only: two processes sharing one file will overwrite each
    other (last writer wins).
    """

    name = "file"

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._data = self._load()

    # --- persistence ------------------------------------------------------

    def _load(self) -> dict:
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                document = empty_document()
                self._write(document)
                logger.info("Created data file %s", self.path)
                return document

            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot load data file {self.path}") from exc

        for key in COLLECTIONS:
            document.setdefault(key, [])
        logger.info(
            "Loaded data file %s (%s)",
            self.path,
            ", ".join(f"{k}={len(document[k])}" for k in COLLECTIONS),
        )
        return document

    def _write(self, document: dict) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.exception("Failed to write data file %s", self.path)
            raise StorageError(f"Cannot write data file {self.path}") from exc

    @contextmanager
    def _mutation(self):
        with self._lock:
            working = copy.deepcopy(self._data)
            yield working
            self._write(working)
            self._data = working

    def _read(self, key: str) -> list[dict]:
        # Callers hold self._lock
        return self._data[key]

    @staticmethod
    def _kind(kind: str) -> str:
        if kind not in ENTITY_MODELS:
            raise ValueError(f"Unknown entity kind: {kind}")
        return kind

    # --- generic CRUD ---------------------------------------------------

    def list(self, kind: str) -> list[dict]:
        with self._lock:
            return copy.deepcopy(_newest_first(self._read(self._kind(kind))))

    def get(self, kind: str, entity_id: str) -> dict | None:
        with self._lock:
            row = next((r for r in self._read(self._kind(kind)) if r["id"] == entity_id), None)
            return copy.deepcopy(row)

    def create(self, kind: str, fields: dict) -> dict:
        model = ENTITY_MODELS[self._kind(kind)]
        with self._mutation() as data:
            record = _new_record(model, fields)
            if model is Product and any(p["stockCode"] == record["stockCode"] for p in data["products"]):
                raise ConflictError("Stock code already exists.")
            data[kind].append(record)
        return copy.deepcopy(record)

    def update(self, kind: str, entity_id: str, fields: dict) -> dict | None:
        model = ENTITY_MODELS[self._kind(kind)]
        with self._lock:
            if not any(r["id"] == entity_id for r in self._read(kind)):
                return None

            with self._mutation() as data:
                row = next(r for r in data[kind] if r["id"] == entity_id)
                patch = model.wire_fields(fields)
                if model is Product and "stockCode" in patch and patch["stockCode"] != row["stockCode"]:
                    if any(p["stockCode"] == patch["stockCode"] and p["id"] != entity_id for p in data["products"]):
                        raise ConflictError("Stock code already exists.")
                row.update(patch)
            return copy.deepcopy(row)

    def delete(self, kind: str, entity_id: str) -> bool:
        self._kind(kind)
        with self._lock:
            if not any(r["id"] == entity_id for r in self._read(kind)):
                return False

            restricting = RESTRICTING_REFERENCES.get(kind)
            if restricting:
                collection, field, label = restricting
                in_use = sum(1 for r in self._read(collection) if r.get(field) == entity_id)
                if in_use:
                    raise ConflictError(
                        f"Cannot delete: referenced by {in_use} {label}",
                        details={"references": in_use},
                    )

            with self._mutation() as data:
                data[kind] = [r for r in data[kind] if r["id"] != entity_id]
                nullified = NULLIFIED_REFERENCES.get(kind)
                if nullified:
                    collection, field = nullified
                    for r in data[collection]:
                        if r.get(field) == entity_id:
                            r[field] = None
            return True

    # --- products ---------------------------------------------------------

    def find_product_by_stock_code(self, stock_code: str) -> dict | None:
        with self._lock:
            row = next((p for p in self._read("products") if p["stockCode"] == stock_code), None)
            return copy.deepcopy(row)

    def search_products(self, query: str) -> list[dict]:
        q = query.lower()
        with self._lock:
            matches = [
                p for p in self._read("products")
                if q in (p.get("name") or "").lower()
                or q in (p.get("stockCode") or "").lower()
                or q in (p.get("category") or "").lower()
            ]
            return copy.deepcopy(matches[:SEARCH_LIMIT])

    # --- sales ------------------------------------------------------------

    def list_sales(self) -> list[dict]:
        with self._lock:
            return copy.deepcopy(_newest_first(self._read("sales")))

    def get_sale(self, sale_id: str) -> dict | None:
        with self._lock:
            return copy.deepcopy(next((s for s in self._read("sales") if s["id"] == sale_id), None))

    def get_sale_with_items(self, sale_id: str) -> dict | None:
        with self._lock:
            sale = next((s for s in self._read("sales") if s["id"] == sale_id), None)
            if sale is None:
                return None
            items = sorted(
                (i for i in self._read("saleItems") if i["saleId"] == sale_id),
                key=lambda i: i.get("lineNo") or 0,
            )
            return copy.deepcopy({"sale": sale, "items": items})

    def recent_sales(self, limit: int) -> list[dict]:
        with self._lock:
            customers = {c["id"]: c["name"] for c in self._read("customers")}
            sellers = {s["id"]: s["name"] for s in self._read("sellers")}
            return [
                {
                    **copy.deepcopy(s),
                    "customerName": customers.get(s["customerId"], ""),
                    "sellerName": sellers.get(s["sellerId"], ""),
                }
                for s in _newest_first(self._read("sales"))[:limit]
            ]

    def record_sale(self, header: SaleHeader, lines: list[SaleLine]) -> dict:
        with self._mutation() as data:
            products = {p["id"]: p for p in data["products"]}

            # Check every line before touching anything
            requested: dict[str, int] = defaultdict(int)
            for line in lines:
                if line.product_id not in products:
                    raise NotFoundError(f"Product not found: {line.product_id}")
                requested[line.product_id] += line.quantity
            for product_id, qty in requested.items():
                product = products[product_id]
                if product["quantity"] < qty:
                    raise InsufficientStockError(
                        f"Insufficient stock for {product['stockCode']}",
                        details={
                            "productId": product_id,
                            "stockCode": product["stockCode"],
                            "requested": qty,
                            "available": product["quantity"],
                        },
                    )

            year, year_start = start_of_year()
            taken = {s["receiptNumber"] for s in data["sales"]}
            receipt = next_receipt_number(
                year,
                len(_since(data["sales"], year_start)),
                exists=taken.__contains__,
            )

            now = utcnow()
            sale = _new_record(Sale, {**header.fields(), "receipt_number": receipt, "created_at": now})
            items = []
            for line_no, line in enumerate(lines, start=1):
                product = products[line.product_id]
                items.append(
                    _new_record(
                        SaleItem,
                        {
                            "sale_id": sale["id"],
                            "product_id": product["id"],
                            "line_no": line_no,
                            "product_name": product["name"],
                            "stock_code": product["stockCode"],
                            "quantity": line.quantity,
                            "unit_price": line.unit_price,
                            "buying_price": _money(product, "buyingPrice"),
                            "subtotal": line.subtotal,
                            "created_at": now,
                        },
                    )
                )
                product["quantity"] -= line.quantity

            data["sales"].append(sale)
            data["saleItems"].extend(items)

        return copy.deepcopy({"sale": sale, "items": items})

    # --- aggregates -------------------------------------------------------

    def _profit_since(self, start) -> Decimal:
        sale_ids = {s["id"] for s in _since(self._read("sales"), start)}
        profit = ZERO
        for item in self._read("saleItems"):
            if item["saleId"] in sale_ids:
                profit += (_money(item, "unitPrice") - _money(item, "buyingPrice")) * int(item["quantity"])
        return to_money(profit)

    def dashboard_stats(self, low_stock_threshold: int) -> DashboardStats:
        today = start_of_today()
        with self._lock:
            products = self._read("products")
            return DashboardStats(
                total_products=len(products),
                todays_sales=to_money(sum((_money(s, "total") for s in _since(self._read("sales"), today)), ZERO)),
                low_stock_count=sum(1 for p in products if p["quantity"] < low_stock_threshold),
                todays_profit=self._profit_since(today),
            )

    def low_stock_products(self, threshold: int) -> list[dict]:
        with self._lock:
            rows = [p for p in self._read("products") if p["quantity"] < threshold]
            return copy.deepcopy(sorted(rows, key=lambda p: p["quantity"]))

    def _party_stats(self, field: str, party_id: str) -> PartyStats:
        with self._lock:
            sales = [s for s in self._read("sales") if s.get(field) == party_id]
            return PartyStats(count=len(sales), total=to_money(sum((_money(s, "total") for s in sales), ZERO)))

    def customer_stats(self, customer_id: str) -> PartyStats:
        return self._party_stats("customerId", customer_id)

    def seller_stats(self, seller_id: str) -> PartyStats:
        return self._party_stats("sellerId", seller_id)

    def stock_by_category(self, low_stock_threshold: int) -> list[CategoryStock]:
        groups: dict[str, dict] = {}
        with self._lock:
            for p in self._read("products"):
                g = groups.setdefault(p["category"], {"products": 0, "value": ZERO, "low": 0})
                g["products"] += 1
                g["value"] += p["quantity"] * _money(p, "sellingPrice")
                if p["quantity"] < low_stock_threshold:
                    g["low"] += 1
        return [
            CategoryStock(
                category=category,
                products=g["products"],
                value=to_money(g["value"]),
                status=category_status(g["low"]),
            )
            for category, g in sorted(groups.items())
        ]

    def sales_by_period(self, period: str) -> PeriodSales:
        start = period_start(period)
        with self._lock:
            sales = _since(self._read("sales"), start)
            return PeriodSales(
                period=period,
                transactions=len(sales),
                revenue=to_money(sum((_money(s, "total") for s in sales), ZERO)),
                profit=self._profit_since(start),
            )

    def top_customers(self, limit: int) -> list[TopCustomer]:
        with self._lock:
            names = {c["id"]: c["name"] for c in self._read("customers")}
            totals: dict[str, dict] = {}
            for s in self._read("sales"):
                t = totals.setdefault(s["customerId"], {"purchases": 0, "spent": ZERO})
                t["purchases"] += 1
                t["spent"] += _money(s, "total")
        ranked = sorted(totals.items(), key=lambda kv: kv[1]["spent"], reverse=True)[:limit]
        return [
            TopCustomer(
                customer_id=customer_id,
                name=names.get(customer_id, ""),
                purchases=t["purchases"],
                spent=to_money(t["spent"]),
            )
            for customer_id, t in ranked
        ]

    # --- maintenance ------------------------------------------------------

    def initialize(self, *, reset: bool = False) -> None:
        with self._lock:
            if reset:
                self._write(empty_document())
                self._data = empty_document()
            elif not self.path.exists():
                self._write(self._data)

    def export_document(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._data)

    def load_document(self, document: dict) -> dict:
        with self._mutation() as data:
            for key in COLLECTIONS:
                model = DOCUMENT_MODELS[key]
                data[key] = [model.wire_fields(model.from_wire(row)) for row in document.get(key) or []]
        return {key: len(data[key]) for key in COLLECTIONS}

    def health(self) -> dict:
        with self._lock:
            return {
                "backend": self.name,
                "path": str(self.path),
                "writable": os.access(self.path, os.W_OK),
                "products": len(self._read("products")),
                "sales": len(self._read("sales")),
            }
