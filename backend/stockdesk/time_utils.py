from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


PERIODS = ("today", "week", "month", "year", "all")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    """Wall-clock 'now' in the server's local timezone (aware)."""
    return datetime.now().astimezone()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with millisecond precision and trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_utc_naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Lower bound (UTC-naive) of a reporting window ending now.

    today/month/year start at the local calendar boundary; week is a rolling
    7x24h window, not a calendar week. "all" has no lower bound (None).
    """
    now = now or local_now()
    if now.tzinfo is None:
        now = now.astimezone()

    if period == "today":
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif period == "week":
        start = now - timedelta(days=7)
    elif period == "month":
        start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    elif period == "year":
        start = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    elif period == "all":
        return None
    else:
        raise ValueError(f"Unknown period: {period}")

    return _to_utc_naive(start)


def start_of_today() -> datetime:
    return period_start("today")


def start_of_year(now: Optional[datetime] = None) -> tuple[int, datetime]:
    """Local calendar year and its start as UTC-naive (for receipt numbering)."""
    now = now or local_now()
    return now.year, period_start("year", now)
