# Overview: Dashboard tiles and the low-stock list.

from flask import Blueprint, jsonify, request

from ..services import reporting_service
from ..validation import ValidationError, parse_query_int

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
def dashboard_stats():
    """totalProducts, todaysSales, lowStockCount, todaysProfit (since local midnight)."""
    return jsonify(reporting_service.dashboard_stats())


@dashboard_bp.get("/low-stock")
def low_stock():
    try:
        threshold = parse_query_int("threshold", request.args.get("threshold"), default=None, minimum=0)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify(reporting_service.low_stock(threshold))
