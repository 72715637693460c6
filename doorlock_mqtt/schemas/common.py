"""
Common Schema Helpers
=====================

Bounded Context: Shared Data Structures

Timestamp helpers shared by commands, status reports and access log rows.

Design Principles:
- All timestamps are timezone-aware UTC datetimes in memory
- ISO 8601 strings on the wire (Supabase returns "+00:00" or "Z" suffixes)
"""

from datetime import datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO 8601 string (or datetime) into an aware UTC datetime.

    Naive values are assumed to be UTC.

    Args:
        value: ISO string such as "2025-03-01T10:00:00.123+00:00" or datetime

    Returns:
        Aware datetime in UTC

    Raises:
        ValueError: If value is not a valid ISO timestamp
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {value}") from e
    else:
        raise ValueError(f"Invalid timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO 8601 (UTC)."""
    return parse_timestamp(value).isoformat()
