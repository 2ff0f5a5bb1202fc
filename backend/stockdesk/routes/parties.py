# Overview: Flask API routes for suppliers, customers and sellers; parses input and returns JSON responses.

"""
Supplier, customer and seller CRUD.

The three resources share one route shape; each gets its own Blueprint so
URLs and endpoint names stay per-resource (/api/suppliers, /api/customers,
/api/sellers). Customer and seller reads carry lifetime sale totals.
"""
from flask import Blueprint, jsonify, request

from ..models import Customer, Seller, Supplier
from ..services.parties_service import (
    create_party,
    delete_party,
    get_party,
    list_parties,
    update_party,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email"},
    required_on_create={"name", "phone", "email"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email"},
    required_on_create={"name", "phone", "email"},
)

SELLER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email"},
    required_on_create={"name", "email"},
)


def make_party_blueprint(kind: str, model, policy: ModelValidationPolicy, label: str) -> Blueprint:
    bp = Blueprint(kind, __name__, url_prefix=f"/api/{kind}")
    not_found = {"error": f"{label} not found"}

    @bp.get("")
    def list_route():
        return jsonify(list_parties(kind))

    @bp.get("/<entity_id>")
    def get_route(entity_id: str):
        row = get_party(kind, entity_id)
        if row is None:
            return not_found, 404
        return row

    @bp.post("")
    def create_route():
        payload = request.get_json(silent=True) or {}
        try:
            patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
        except ValidationError as e:
            return {"error": str(e)}, 400

        return create_party(kind, patch=patch), 201

    @bp.patch("/<entity_id>")
    def update_route(entity_id: str):
        payload = request.get_json(silent=True) or {}
        try:
            patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
        except ValidationError as e:
            return {"error": str(e)}, 400

        updated = update_party(kind, entity_id, patch=patch)
        if updated is None:
            return not_found, 404
        return updated

    @bp.delete("/<entity_id>")
    def delete_route(entity_id: str):
        try:
            deleted = delete_party(kind, entity_id)
        except ConflictError as e:
            return e.to_dict(), 409

        if not deleted:
            return not_found, 404
        return "", 204

    return bp


suppliers_bp = make_party_blueprint("suppliers", Supplier, SUPPLIER_POLICY, "Supplier")
customers_bp = make_party_blueprint("customers", Customer, CUSTOMER_POLICY, "Customer")
sellers_bp = make_party_blueprint("sellers", Seller, SELLER_POLICY, "Seller")
