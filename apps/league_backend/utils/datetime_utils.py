"""
Datetime utility functions.
All instants handled by the services are timezone-aware UTC.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are taken to already be UTC (SQLite hands timestamps back
    without tzinfo); aware values are converted.

    Examples:
        >>> ensure_utc(datetime(2020, 1, 1)).isoformat()
        '2020-01-01T00:00:00+00:00'
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for an optional datetime."""
    normalized = ensure_utc(value)
    return normalized.isoformat() if normalized else None
