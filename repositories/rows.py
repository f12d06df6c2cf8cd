"""
Shared helpers for Supabase row handling.

- UTC timestamp (de)serialization
- Executing a query builder and turning any failure into PersistenceError
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping

from postgrest.exceptions import APIError  # type: ignore[import-not-found]

from domain.errors import PersistenceError
from domain.time import require_utc_timestamp


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def execute_rows(query: Any, *, action: str) -> List[Mapping[str, Any]]:
    """
    Execute a postgrest query builder and return its rows.

    Raises:
        PersistenceError: on API errors, transport errors or an error payload
    """

    try:
        response = query.execute()
    except APIError as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e
    except Exception as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise PersistenceError(f"Failed to {action}: {error}")

    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    # Single objects and scalar function results
    return [data]
