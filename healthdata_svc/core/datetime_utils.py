"""
UTC-first datetime utilities for Health Data Service API.

- All datetimes are stored and processed in UTC
- Database storage: fixed-width ISO 8601 strings with microseconds, so that
  lexical order in SQLite equals chronological order
- API responses: ISO 8601 strings

Usage:
    from core.datetime_utils import utc_now, to_utc, to_db_string, from_db_string

    now = utc_now()
    stored = to_db_string(now)       # "2024-01-15T05:00:00.000000Z"
    restored = from_db_string(stored)
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)

DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


# =============================================================================
# CORE UTILITIES
# =============================================================================

def utc_now() -> datetime:
    """
    Get current datetime in UTC with timezone info.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    - If datetime is naive (no timezone), assumes it's already UTC
    - If datetime has timezone, converts to UTC

    Example:
        >>> from datetime import timedelta
        >>> ist = timezone(timedelta(hours=5, minutes=30))
        >>> to_utc(datetime(2024, 1, 15, 16, 0, tzinfo=ist)).hour
        10
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is UTC, handling None gracefully."""
    return to_utc(dt) if dt is not None else None


# =============================================================================
# PARSING
# =============================================================================

def parse_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse a datetime value to UTC datetime.

    Accepts a datetime object or an ISO 8601 string (with or without
    timezone, with or without 'Z' suffix).

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return to_utc(value)

    if not isinstance(value, str):
        raise ValueError(f"Expected datetime or string, got {type(value).__name__}")

    value = value.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        raise ValueError(f"Cannot parse datetime: '{value}'")


# =============================================================================
# DATABASE HELPERS
# =============================================================================

def to_db_string(dt: datetime) -> str:
    """
    Convert datetime to the fixed-width string stored in SQLite.

    Example:
        >>> to_db_string(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00.000000Z'
    """
    return to_utc(dt).strftime(DB_FORMAT)


def from_db_string(value: Optional[str]) -> Optional[datetime]:
    """
    Parse datetime string from SQLite storage.

    Returns:
        Parsed datetime in UTC, or None if value is None.
    """
    if value is None:
        return None
    return parse_datetime(value)
