"""
Data models for Greg recurrence expansion.

This module exports the series, occurrence and constraint models for easy
importing.
"""

# Import datetime helpers
from src.models.base import CANONICAL_FORMAT, format_datetime, month_bounds, parse_datetime

# Import all models
from src.models.events import (
    WEEKDAY_CODES,
    EventSeries,
    Frequency,
    Occurrence,
    Override,
    Recurrence,
)
from src.models.constraints import Constraint

# Export all for easy importing
__all__ = [
    # Datetime helpers
    "CANONICAL_FORMAT",
    "format_datetime",
    "month_bounds",
    "parse_datetime",
    # Event models
    "WEEKDAY_CODES",
    "EventSeries",
    "Frequency",
    "Occurrence",
    "Override",
    "Recurrence",
    # Constraint model
    "Constraint",
]
