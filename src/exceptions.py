"""
Custom exceptions for recurrence expansion and event queries.

Two tiers:
- InvalidInputError is raised to the caller (bad query window input)
- SeriesParseError is raised per series and swallowed by the Calendar
"""


class GregError(Exception):
    """Base exception for recurrence and query operations."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class InvalidInputError(GregError):
    """
    Invalid query parameters.

    Causes:
    - Unparseable current_time
    - Unparseable start_date or end_date

    Aborts the whole query before any expansion is attempted.
    """


class SeriesParseError(GregError):
    """
    A single event series cannot be expanded.

    Causes:
    - Unparseable start, end or until
    - Unknown recurrence frequency
    - Malformed override times or weekday codes

    The Calendar catches this, logs it and skips the series.
    """
