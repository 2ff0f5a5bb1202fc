# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes: read-only history plus the atomic checkout endpoint."""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..storage import StorageError
from ..validation import ConflictError, NotFoundError, ValidationError, parse_query_int

MAX_RECENT_LIMIT = 100

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    return jsonify(sales_service.list_sales())


@sales_bp.get("/recent")
def recent_sales_route():
    try:
        limit = parse_query_int(
            "limit",
            request.args.get("limit"),
            default=current_app.config["RECENT_SALES_LIMIT"],
            maximum=MAX_RECENT_LIMIT,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(sales_service.recent_sales(limit))


@sales_bp.get("/<sale_id>")
def get_sale_route(sale_id: str):
    result = sales_service.get_sale(sale_id)
    if result is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify(result)


@sales_bp.post("")
def create_sale_route():
    """
    Record a completed sale.

    Body: customerId, sellerId, paymentMethod, discount, discountType and
    items [{productId, quantity, unitPrice?}]. Responds 201 with
    {"sale": ..., "items": [...]}; 409 when stock is insufficient (nothing
    is written).
    """
    payload = request.get_json(silent=True)

    try:
        result = sales_service.create_sale(payload)
        return jsonify(result), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except StorageError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500
