"""
Event query window builder.

Turns high-level listing parameters (current time, explicit date range, or a
target month, plus a category filter) into:
- A storage-query description for fetching candidate event series
- The constraint window passed to Calendar.recurrences()

No storage access happens here. The current time is always an explicit
parameter.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field, field_validator

from src.exceptions import InvalidInputError
from src.models.base import format_datetime, month_bounds, parse_datetime
from src.models.constraints import Constraint

logger = logging.getLogger(__name__)


# =============================================================================
# Parameter Models
# =============================================================================


class FieldNames(BaseModel):
    """Storage key names for event series fields."""

    start: str = "start"
    end: str = "end"
    until: str = "until"
    frequency: str = "frequency"
    exceptions: str = "exceptions"
    overrides: str = "overrides"
    recurrence_description: str = "recurrence_description"


class EventQueryParams(BaseModel):
    """High-level event listing parameters."""

    current_time: str = Field(
        ...,
        description="Reference 'now'; anchors the default month window",
    )
    start_date: Optional[str] = Field(
        None,
        description="Explicit window start (inclusive, from midnight)",
    )
    end_date: Optional[str] = Field(
        None,
        description="Explicit window end (inclusive, through 23:59:59)",
    )
    event_month: Optional[str] = Field(
        None,
        description="Target month (YYYY-MM); ignored if unparseable",
    )
    truncate_current_month: bool = Field(
        default=False,
        description="Within the current month, start the window at today",
    )
    event_category: Optional[Union[int, str]] = Field(
        None,
        description="Category id (int) or slug (str) to filter by",
    )
    expand_recurrences: bool = Field(
        default=True,
        description="Expand series into occurrences; False returns series as-is",
    )
    field_names: FieldNames = Field(default_factory=FieldNames)

    @field_validator("current_time", "start_date", "end_date", "event_month", mode="before")
    @classmethod
    def coerce_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return format_datetime(v)
        return v


class DatePredicate(BaseModel):
    """Compare one stored date-time field against a value."""

    key: str
    value: str
    compare: Literal["<=", ">=", "<", ">", "="]
    type: Literal["DATETIME"] = "DATETIME"


class PredicateGroup(BaseModel):
    """Predicates joined by AND/OR; groups may nest."""

    relation: Literal["AND", "OR"] = "AND"
    clauses: list[Union[DatePredicate, "PredicateGroup"]] = Field(default_factory=list)


PredicateGroup.model_rebuild()


class CategoryPredicate(BaseModel):
    """Restrict series to a category, by id or slug."""

    field: Literal["id", "slug"]
    terms: list[Union[int, str]]


class StorageQuery(BaseModel):
    """Everything the series store needs to fetch candidate series."""

    date_range: PredicateGroup
    category: Optional[CategoryPredicate] = None


# =============================================================================
# Query
# =============================================================================


class EventQuery:
    """
    Computes the listing window and the storage query for candidate series.

    Raises InvalidInputError at construction for unparseable current_time,
    start_date or end_date; the whole listing is aborted before expansion.
    """

    def __init__(self, params: Union[EventQueryParams, Mapping]):
        if isinstance(params, Mapping):
            params = EventQueryParams.model_validate(dict(params))
        self._params = params

        self.time = _parse_param(params.current_time, "current_time")
        self.month = _parse_month(params.event_month)
        self._start = self._init_start(params)
        self._end = self._init_end(params, self._start)

    def _init_start(self, params: EventQueryParams) -> datetime:
        if self.month is not None:
            return self.month
        if params.start_date:
            return _parse_param(params.start_date, "start_date")
        return self.time

    def _init_end(self, params: EventQueryParams, start: datetime) -> datetime:
        if params.end_date:
            return _parse_param(params.end_date, "end_date")
        return month_bounds(start)[1]

    @property
    def expand_recurrences(self) -> bool:
        return self._params.expand_recurrences

    @property
    def field_names(self) -> FieldNames:
        return self._params.field_names

    def start_date(self) -> str:
        """Window start, always at midnight."""
        if self._params.start_date and self.month is None:
            # Explicit start_date; honor precisely
            return self._start.strftime("%Y-%m-%d 00:00:00")

        if self.truncate() and self.within_current_month(self._start):
            return self.time.strftime("%Y-%m-%d 00:00:00")

        return self._start.strftime("%Y-%m-01 00:00:00")

    def end_date(self) -> str:
        """Window end, always at 23:59:59."""
        return self._end.strftime("%Y-%m-%d 23:59:59")

    def truncate(self) -> bool:
        return self._params.truncate_current_month

    def within_current_month(self, dt: datetime) -> bool:
        """Whether dt falls in the same month as current_time."""
        return (dt.year, dt.month) == (self.time.year, self.time.month)

    def params(self) -> StorageQuery:
        """
        Build the storage query for candidate series.

        Selects series that could intersect the window: starting on/before
        the window end, and ending or recurring until on/after the window
        start.
        """
        keys = self._params.field_names
        start = self.start_date()
        end = self.end_date()

        date_range = PredicateGroup(
            relation="AND",
            clauses=[
                DatePredicate(key=keys.start, value=end, compare="<="),
                PredicateGroup(
                    relation="OR",
                    clauses=[
                        DatePredicate(key=keys.end, value=start, compare=">="),
                        DatePredicate(key=keys.until, value=start, compare=">="),
                    ],
                ),
            ],
        )

        return StorageQuery(date_range=date_range, category=self._category())

    def _category(self) -> Optional[CategoryPredicate]:
        ident = self._params.event_category
        if ident is None or ident == "":
            return None
        field = "id" if isinstance(ident, int) else "slug"
        return CategoryPredicate(field=field, terms=[ident])

    def recurrence_constraints(self) -> Constraint:
        """
        Constraint window for Calendar.recurrences().

        event_month is only passed through when it alone defines the window.
        """
        event_month = None
        if (
            self.month is not None
            and not self._params.end_date
            and not (self.truncate() and self.within_current_month(self.month))
        ):
            event_month = self.month.strftime("%Y-%m")

        return Constraint(
            earliest=self.start_date(),
            latest=self.end_date(),
            event_month=event_month,
        )


# =============================================================================
# Month Navigation
# =============================================================================


def event_month(month: Optional[str], fmt: str = "%Y-%m") -> str:
    """
    Format the given month, or return "" if it cannot be parsed.

    Args:
        month: Month string, e.g. "2020-03"
        fmt: strftime format for the result

    Returns:
        Formatted month string or ""
    """
    dt = _parse_month(month)
    return dt.strftime(fmt) if dt else ""


def prev_month(month: Optional[str], fmt: str = "%Y-%m") -> str:
    """The month before `month`, formatted, or "" if unparseable."""
    dt = _parse_month(month)
    return (dt - relativedelta(months=1)).strftime(fmt) if dt else ""


def next_month(month: Optional[str], fmt: str = "%Y-%m") -> str:
    """The month after `month`, formatted, or "" if unparseable."""
    dt = _parse_month(month)
    return (dt + relativedelta(months=1)).strftime(fmt) if dt else ""


def _parse_month(value: Optional[str]) -> Optional[datetime]:
    """First instant of the month named by value, or None."""
    if not value:
        return None
    try:
        return month_bounds(parse_datetime(value))[0]
    except ValueError:
        logger.debug(f"Ignoring unparseable event_month {value!r}")
        return None


def _parse_param(value: Any, name: str) -> datetime:
    try:
        return parse_datetime(value)
    except ValueError as e:
        raise InvalidInputError(f"Invalid date string for {name}: {value!r}", e) from e
