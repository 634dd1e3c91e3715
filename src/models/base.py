"""
Base datetime handling shared by all models.

Provides:
- Canonical "YYYY-MM-DD HH:MM:SS" formatting
- Lenient parsing of date-time strings into naive datetimes
- Month boundary helpers

All timestamps are naive local date-times. Offsets in input strings are
discarded, never converted.
"""

import calendar
from datetime import date, datetime, time
from typing import Any

from dateutil.parser import parse as _parse

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"

# Components missing from a parsed string are filled from here
# (so "2020-10" parses to 2020-10-01 00:00:00)
_PARSE_DEFAULT = datetime(1970, 1, 1)


def parse_datetime(value: Any) -> datetime:
    """
    Parse a date-time-like value into a naive datetime.

    Args:
        value: datetime, date, or a string dateutil can parse

    Returns:
        Naive datetime

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date string: {value!r}")

    try:
        parsed = _parse(value, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date string: {value!r}") from e

    return parsed.replace(tzinfo=None)


def format_datetime(dt: datetime) -> str:
    """
    Format a datetime in the canonical form.

    Args:
        dt: Datetime to format

    Returns:
        String in YYYY-MM-DD HH:MM:SS format
    """
    return dt.strftime(CANONICAL_FORMAT)


def month_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """First instant (00:00:00) and last second (23:59:59) of dt's month."""
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    first = datetime(dt.year, dt.month, 1)
    last = datetime(dt.year, dt.month, last_day, 23, 59, 59)
    return first, last
