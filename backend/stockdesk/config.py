# backend/stockdesk/config.py
from __future__ import annotations
import os


def _storage_backend_from_env() -> str:
    # Packaged desktop builds set USE_FILE_DB=true and ship without a database
    if os.environ.get("USE_FILE_DB", "").lower() == "true":
        return "file"
    return os.environ.get("STORAGE_BACKEND", "sql").strip().lower()


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" (SQLAlchemy models) or "file" (single JSON document)
    STORAGE_BACKEND = _storage_backend_from_env()

    # JSON document used by the file backend; None means <instance_path>/db.json
    DATA_FILE = os.environ.get("DATA_FILE") or None

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "20"))
    RECENT_SALES_LIMIT = 10
    TOP_CUSTOMERS_LIMIT = 10

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
