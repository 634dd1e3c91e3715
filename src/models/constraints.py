"""
Constraint window applied to generated occurrences.

An occurrence is kept when earliest <= start <= latest. Comparisons are
lexicographic on the canonical "YYYY-MM-DD HH:MM:SS" form, which orders
chronologically for that fixed-width format.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.base import format_datetime, month_bounds, parse_datetime


class Constraint(BaseModel):
    """Window bounds for filtering occurrences by start time."""

    model_config = ConfigDict(frozen=True)

    earliest: Optional[str] = Field(
        None,
        description="Drop occurrences starting before this date-time",
    )
    latest: Optional[str] = Field(
        None,
        description="Drop occurrences starting after this date-time",
    )
    event_month: Optional[str] = Field(
        None,
        description="YYYY-MM shorthand; overrides earliest/latest with the month bounds",
    )

    @field_validator("earliest", "latest", "event_month", mode="before")
    @classmethod
    def coerce_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return format_datetime(v)
        if isinstance(v, date):
            return v.isoformat()
        return v

    def window(self) -> tuple[Optional[str], Optional[str]]:
        """
        Resolve the effective (earliest, latest) bounds.

        Returns:
            Tuple of bound strings, either of which may be None

        Raises:
            ValueError: If event_month is set but cannot be parsed
        """
        if self.event_month:
            first, last = month_bounds(parse_datetime(self.event_month))
            return format_datetime(first), format_datetime(last)

        return self.earliest or None, self.latest or None
