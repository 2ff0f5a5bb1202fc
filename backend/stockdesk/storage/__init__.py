from __future__ import annotations

import os

from flask import Flask, current_app

from .base import (
    COLLECTIONS,
    InsufficientStockError,
    SaleHeader,
    SaleLine,
    Storage,
    StorageError,
)

EXTENSION_KEY = "stockdesk.storage"

__all__ = [
    "COLLECTIONS",
    "InsufficientStockError",
    "SaleHeader",
    "SaleLine",
    "Storage",
    "StorageError",
    "init_storage",
    "get_storage",
]


def build_storage(app: Flask) -> Storage:
    backend = app.config.get("STORAGE_BACKEND", "sql")

    if backend == "sql":
        from .sql_storage import SqlStorage
        return SqlStorage()

    if backend == "file":
        from .file_storage import FileStorage
        path = app.config.get("DATA_FILE") or os.path.join(app.instance_path, "db.json")
        return FileStorage(path)

    raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend!r} (expected 'sql' or 'file')")


def init_storage(app: Flask) -> Storage:
    """Select the backend once per app; routes reach it through get_storage()."""
    storage = build_storage(app)
    app.extensions[EXTENSION_KEY] = storage
    app.logger.info("Storage backend: %s", storage.name)
    return storage


def get_storage() -> Storage:
    return current_app.extensions[EXTENSION_KEY]
