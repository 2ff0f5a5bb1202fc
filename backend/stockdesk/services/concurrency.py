# Overview: Retry and row-locking helpers for multi-statement SQL writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Always retries on OperationalError (deadlocks, "database is locked");
    callers add exception types via retry_on (e.g. IntegrityError when two
    writers race for the same receipt number). The session is rolled back
    before each retry so func() always starts from a clean transaction.
    """
    retryable = (OperationalError, *retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
