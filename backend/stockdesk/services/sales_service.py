"""
Sales Service - checkout recording.

A sale arrives as one request (header + items). Everything the client says
about money is re-derived here from the product rows before the storage
backend writes the sale, its items and the stock decrements in one atomic
step.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..models import DISCOUNT_TYPES, PAYMENT_METHODS
from ..money import MAX_MONEY, ZERO, compute_total, to_money
from ..storage import SaleHeader, SaleLine, get_storage
from ..validation import NotFoundError, ValidationError, parse_int, parse_money


def _require_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required")
    return value.strip()


def _optional_money(container: dict, key: str, label: str) -> Decimal | None:
    if container.get(key) is None:
        return None
    return parse_money(label, container[key])


def _check_claim(label: str, claimed: Decimal | None, computed: Decimal) -> None:
    if claimed is not None and claimed != computed:
        raise ValidationError(f"{label} mismatch: expected {computed:.2f}, got {claimed:.2f}")


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
    for idx, raw in enumerate(raw_items):
        label = f"items[{idx}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{label} must be an object")

        product_id = raw.get("productId")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError(f"{label}.productId is required")
        if "quantity" not in raw:
            raise ValidationError(f"{label}.quantity is required")

        quantity = parse_int(f"{label}.quantity", raw["quantity"])
        if quantity <= 0:
            raise ValidationError(f"{label}.quantity must be > 0")

        unit_price = _optional_money(raw, "unitPrice", f"{label}.unitPrice")
        if unit_price is not None and unit_price < 0:
            raise ValidationError(f"{label}.unitPrice must be >= 0")

        # productName/stockCode/buyingPrice are snapshotted server-side; client copies are ignored
        parsed.append({
            "product_id": product_id.strip(),
            "quantity": quantity,
            "unit_price": unit_price,
            "subtotal": _optional_money(raw, "subtotal", f"{label}.subtotal"),
        })
    return parsed


def build_sale(payload: dict) -> tuple[SaleHeader, list[SaleLine]]:
    """
    Validate a checkout payload and derive authoritative totals.

    Raises:
        ValidationError: malformed input or a subtotal/total that disagrees
            with the recomputed amount
        NotFoundError: unknown customer, seller or product
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    storage = get_storage()

    customer_id = _require_text(payload, "customerId")
    seller_id = _require_text(payload, "sellerId")

    payment_method = payload.get("paymentMethod")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"paymentMethod must be one of: {', '.join(PAYMENT_METHODS)}")

    discount_type = payload.get("discountType") or "percentage"
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discountType must be one of: {', '.join(DISCOUNT_TYPES)}")

    discount = _optional_money(payload, "discount", "discount")
    if discount is None:
        discount = ZERO
    if discount < 0:
        raise ValidationError("discount must be >= 0")

    items = _parse_items(payload.get("items"))

    if storage.get("customers", customer_id) is None:
        raise NotFoundError(f"Customer not found: {customer_id}")
    if storage.get("sellers", seller_id) is None:
        raise NotFoundError(f"Seller not found: {seller_id}")

    lines: list[SaleLine] = []
    subtotal = ZERO
    for idx, item in enumerate(items):
        product = storage.get("products", item["product_id"])
        if product is None:
            raise NotFoundError(f"Product not found: {item['product_id']}")

        unit_price = item["unit_price"]
        if unit_price is None:
            unit_price = to_money(product["sellingPrice"])

        line_subtotal = to_money(unit_price * item["quantity"])
        _check_claim(f"items[{idx}].subtotal", item["subtotal"], line_subtotal)

        lines.append(SaleLine(
            product_id=item["product_id"],
            quantity=item["quantity"],
            unit_price=unit_price,
            subtotal=line_subtotal,
        ))
        subtotal += line_subtotal

    subtotal = to_money(subtotal)
    if subtotal > MAX_MONEY:
        raise ValidationError(f"subtotal cannot exceed {MAX_MONEY}")
    total = compute_total(subtotal, discount, discount_type)

    _check_claim("subtotal", _optional_money(payload, "subtotal", "subtotal"), subtotal)
    _check_claim("total", _optional_money(payload, "total", "total"), total)

    header = SaleHeader(
        customer_id=customer_id,
        seller_id=seller_id,
        subtotal=subtotal,
        discount=discount,
        discount_type=discount_type,
        total=total,
        payment_method=payment_method,
    )
    return header, lines


def create_sale(payload: dict) -> dict:
    """
    Record a sale with its items and decrement stock, all or nothing.

    Returns {"sale": {...}, "items": [...]}.

    Raises:
        ValidationError / NotFoundError: see build_sale
        InsufficientStockError: a product has fewer units than requested
        StorageError: the backend could not persist the sale
    """
    header, lines = build_sale(payload)
    result = get_storage().record_sale(header, lines)

    sale = result["sale"]
    current_app.logger.info(
        "Recorded sale %s (%d items, total %s, %s)",
        sale["receiptNumber"],
        len(result["items"]),
        sale["total"],
        sale["paymentMethod"],
    )
    return result


def list_sales() -> list[dict]:
    return get_storage().list_sales()


def get_sale(sale_id: str) -> dict | None:
    return get_storage().get_sale_with_items(sale_id)


def recent_sales(limit: int) -> list[dict]:
    return get_storage().recent_sales(limit)
