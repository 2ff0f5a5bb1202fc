# Overview: Service-layer operations for products: listing, search and validated create/update/delete.

from __future__ import annotations

from ..storage import get_storage
from ..validation import ValidationError


def _require_supplier(patch: dict) -> None:
    supplier_id = patch.get("supplier_id")
    if supplier_id is None:
        return
    if get_storage().get("suppliers", supplier_id) is None:
        raise ValidationError(f"Supplier not found: {supplier_id}")


def list_products(search: str | None = None) -> list[dict]:
    """
    All products newest first, or up to 20 substring matches when a search
    term is given (name, stock code or category; case-insensitive).
    """
    storage = get_storage()
    term = (search or "").strip()
    if term:
        return storage.search_products(term)
    return storage.list("products")


def get_product(product_id: str) -> dict | None:
    return get_storage().get("products", product_id)


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: supplierId refers to a missing supplier
        ConflictError: stock code already exists
    """
    _require_supplier(patch)
    return get_storage().create("products", patch)


def update_product(*, product_id: str, patch: dict) -> dict | None:
    if not patch:
        return get_product(product_id)
    _require_supplier(patch)
    return get_storage().update("products", product_id, patch)


def delete_product(*, product_id: str) -> bool:
    return get_storage().delete("products", product_id)
