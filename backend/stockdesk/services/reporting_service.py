# Overview: Dashboard and report queries; validates parameters and delegates aggregation to the storage backend.

from __future__ import annotations

from flask import current_app

from ..storage import get_storage
from ..time_utils import PERIODS
from ..validation import ValidationError


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _threshold(threshold: int | None) -> int:
    if threshold is None:
        return current_app.config["LOW_STOCK_THRESHOLD"]
    return threshold


def dashboard_stats() -> dict:
    return get_storage().dashboard_stats(_threshold(None)).to_dict()


def low_stock(threshold: int | None = None) -> list[dict]:
    return get_storage().low_stock_products(_threshold(threshold))


def stock_report() -> list[dict]:
    rows = get_storage().stock_by_category(_threshold(None))
    return [r.to_dict() for r in rows]


def sales_report(period: str | None = None) -> dict:
    """
    Transactions, revenue and profit for one window ending now.

    today/month/year follow the local calendar; week is the last 7x24h;
    all has no lower bound.
    """
    period = (period or "today").strip().lower()
    if period not in PERIODS:
        raise ReportError(f"period must be one of: {', '.join(PERIODS)}")
    return get_storage().sales_by_period(period).to_dict()


def customer_report(limit: int | None = None) -> list[dict]:
    if limit is None:
        limit = current_app.config["TOP_CUSTOMERS_LIMIT"]
    return [r.to_dict() for r in get_storage().top_customers(limit)]
