# Overview: Suppliers, customers and sellers; customer/seller rows are enriched with lifetime sale totals.

from __future__ import annotations

from ..storage import get_storage


def _enrich(kind: str, row: dict | None) -> dict | None:
    if row is None:
        return None

    storage = get_storage()
    if kind == "customers":
        return {**row, **storage.customer_stats(row["id"]).as_customer()}
    if kind == "sellers":
        return {**row, **storage.seller_stats(row["id"]).as_seller()}
    return row


def list_parties(kind: str) -> list[dict]:
    return [_enrich(kind, row) for row in get_storage().list(kind)]


def get_party(kind: str, party_id: str) -> dict | None:
    return _enrich(kind, get_storage().get(kind, party_id))


def create_party(kind: str, *, patch: dict) -> dict:
    return _enrich(kind, get_storage().create(kind, patch))


def update_party(kind: str, party_id: str, *, patch: dict) -> dict | None:
    storage = get_storage()
    row = storage.update(kind, party_id, patch) if patch else storage.get(kind, party_id)
    return _enrich(kind, row)


def delete_party(kind: str, party_id: str) -> bool:
    """Supplier deletes detach products; customers/sellers with sales raise ConflictError."""
    return get_storage().delete(kind, party_id)
