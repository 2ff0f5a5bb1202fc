# backend/stockdesk/routes/system.py
"""
System health endpoint.

Reports which storage backend is active and whether it answers; used by the
desktop shell to decide when the API is ready.
"""

import time

from flask import Blueprint, current_app

from ..storage import StorageError, get_storage

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    start_time = time.time()
    try:
        details = get_storage().health()
    except StorageError:
        current_app.logger.exception("Storage health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Storage error",
        }, 503

    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "storage": details,
    }
