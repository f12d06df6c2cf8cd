"""
Domain time utilities (pure).

Centralized timestamp validation and calendar arithmetic for sale lifecycle
records (transition events, audit entries, warranty windows).

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces that lifecycle timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """
    Shift a UTC timestamp by whole calendar months.

    The day is clamped to the last day of the target month, so
    2025-01-31 + 1 month is 2025-02-28.
    """

    require_utc_timestamp("value", value)
    if months < 0:
        raise ValueError("months must be >= 0")

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
