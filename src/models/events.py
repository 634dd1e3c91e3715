"""
Event series and occurrence models.

Entities:
- EventSeries: one stored event, possibly recurring
- Recurrence: the recurrence rules attached to a series
- Override: a per-weekday/per-slot variation in clock time and duration
- Occurrence: one concrete instance derived from a series

Series are read-only input. Arbitrary caller fields travel in `payload`
and are copied verbatim onto every occurrence.
"""

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from src.exceptions import SeriesParseError

# Two-letter iCalendar weekday codes, Monday first
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


class Frequency(str, Enum):
    """Recurrence frequency (iCalendar FREQ)."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @classmethod
    def parse(cls, value: Any) -> "Frequency":
        """
        Parse a frequency case-insensitively.

        Raises:
            ValueError: If value is not a known frequency
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid frequency: {value!r}")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid frequency: {value!r}") from None


@dataclass(frozen=True)
class Override:
    """
    Alternate clock time for some or all recurrences of a series.

    `start` and `end` are time-of-day strings ("09:00:00"). `by_day` limits
    the override to the given weekdays; empty means every generated day.
    """

    start: str
    end: str
    by_day: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping) -> "Override":
        if not isinstance(data, Mapping):
            raise SeriesParseError(f"Invalid override: {data!r}")

        days = _as_tuple(data.get("BYDAY", data.get("by_day")), "BYDAY")

        codes = []
        for day in days:
            code = str(day).strip().upper()
            if code not in WEEKDAY_CODES:
                raise SeriesParseError(f"Invalid weekday code: {day!r}")
            codes.append(code)

        return cls(
            start=data.get("start"),
            end=data.get("end"),
            by_day=tuple(codes),
        )


@dataclass(frozen=True)
class Recurrence:
    """Recurrence rules for a series; frequency and until are validated lazily."""

    frequency: Any
    until: Any
    exceptions: tuple = ()
    overrides: tuple[Override, ...] = ()

    @classmethod
    def from_mapping(cls, data: Optional[Mapping]) -> Optional["Recurrence"]:
        """
        Build a Recurrence from raw series data.

        Returns:
            Recurrence, or None when data is empty (non-recurring series)

        Raises:
            SeriesParseError: If data is not a mapping, exceptions or overrides
                are not iterable, or an override is malformed
        """
        if not data:
            return None
        if not isinstance(data, Mapping):
            raise SeriesParseError(f"Invalid recurrence: {data!r}")

        overrides = tuple(
            Override.from_mapping(o)
            for o in _as_tuple(data.get("overrides"), "overrides")
        )

        return cls(
            frequency=data.get("frequency"),
            until=data.get("until"),
            exceptions=_as_tuple(data.get("exceptions"), "exceptions"),
            overrides=overrides,
        )


@dataclass(frozen=True)
class EventSeries:
    """
    One stored event definition that may represent many occurrences.

    The typed fields are a parsed view over `payload`, which holds every
    field of the source record in its original order.
    """

    start: Any
    end: Any
    title: Optional[str] = None
    recurrence: Optional[Recurrence] = None
    recurrence_description: Optional[str] = None
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping) -> "EventSeries":
        """
        Build an EventSeries from a plain mapping.

        Raises:
            SeriesParseError: If the record or its recurrence is malformed
        """
        if not isinstance(record, Mapping):
            raise SeriesParseError(f"Invalid event series: {record!r}")

        return cls(
            start=record.get("start"),
            end=record.get("end"),
            title=record.get("title"),
            recurrence=Recurrence.from_mapping(record.get("recurrence")),
            recurrence_description=record.get("recurrence_description"),
            payload=dict(record),
        )

    @classmethod
    def coerce(cls, value: Any) -> "EventSeries":
        """Return value unchanged if already an EventSeries, else parse it."""
        if isinstance(value, cls):
            return value
        return cls.from_record(value)

    @property
    def recurring(self) -> bool:
        """Whether this series carries recurrence rules."""
        return self.recurrence is not None

    @property
    def frequency_label(self) -> str:
        """Human-readable frequency ("Weekly"), or empty if not recurring."""
        if not self.recurrence or not self.recurrence.frequency:
            return ""
        frequency = self.recurrence.frequency
        if isinstance(frequency, Frequency):
            frequency = frequency.value
        return str(frequency).capitalize()


@dataclass(frozen=True)
class Occurrence:
    """One concrete, dated instance derived from a series."""

    start: str
    end: str
    recurrence_description: str = ""
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_series(cls, series: EventSeries) -> "Occurrence":
        """The series itself as a single occurrence, stored times untouched."""
        return cls(
            start=series.start,
            end=series.end,
            recurrence_description=series.recurrence_description or "",
            payload=copy.deepcopy(series.payload),
        )

    @property
    def title(self) -> Optional[str]:
        return self.payload.get("title")

    def to_dict(self) -> dict:
        """
        Convert to a flat record.

        Returns:
            Payload fields with start, end and recurrence_description overwritten
        """
        record = dict(self.payload)
        record.update(
            start=self.start,
            end=self.end,
            recurrence_description=self.recurrence_description,
        )
        return record


def _as_tuple(value: Any, name: str) -> tuple:
    if not value:
        return ()
    if isinstance(value, (str, Mapping)):
        return (value,)
    if not isinstance(value, Iterable):
        raise SeriesParseError(f"Invalid {name}: {value!r}")
    return tuple(value)
