# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog routes.

GET /api/products?search=<term> returns up to 20 matches on name, stock code
or category (case-insensitive); without a term it lists every product.
"""
from flask import Blueprint, jsonify, request

from ..models import Product
from ..services.products_service import (
    create_product,
    delete_product,
    get_product,
    list_products as list_products_service,
    update_product,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "stock_code", "name", "category",
        "buying_price", "selling_price", "quantity", "supplier_id",
    },
    required_on_create={"stock_code", "name", "category", "buying_price", "selling_price", "quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    return jsonify(list_products_service(search=request.args.get("search")))


@products_bp.get("/<product_id>")
def get_product_route(product_id: str):
    product = get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return product


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = create_product(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return e.to_dict(), 409

    return created, 201


@products_bp.patch("/<product_id>")
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return e.to_dict(), 409

    if updated is None:
        return {"error": "Product not found"}, 404
    return updated


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    try:
        deleted = delete_product(product_id=product_id)
    except ConflictError as e:
        return e.to_dict(), 409

    if not deleted:
        return {"error": "Product not found"}, 404
    return "", 204
