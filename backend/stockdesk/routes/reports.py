from flask import Blueprint, jsonify, request

from ..services import reporting_service
from ..validation import ValidationError, parse_query_int

MAX_TOP_CUSTOMERS = 100

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stock")
def stock_report():
    return jsonify(reporting_service.stock_report()), 200


@reports_bp.get("/sales")
def sales_report():
    try:
        report = reporting_service.sales_report(request.args.get("period"))
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/customers")
def customer_report():
    try:
        limit = parse_query_int(
            "limit", request.args.get("limit"), default=None, maximum=MAX_TOP_CUSTOMERS
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify(reporting_service.customer_report(limit)), 200
