"""
Recurrence rule engine.

Thin wrapper over python-dateutil's RRULE/RSET implementation:
- Builds rules from frequency, anchor, until and optional weekday list
- Unions rules and subtracts excluded instants
- Aligns loosely entered exception dates to the anchor's clock time
- Renders human-readable rule descriptions
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, time
from typing import Any, Optional

from dateutil import rrule as _rrule

from src.config import DEFAULT_HUMAN_READABLE_FORMAT
from src.models.base import parse_datetime
from src.models.events import WEEKDAY_CODES, Frequency

logger = logging.getLogger(__name__)

_DATEUTIL_FREQUENCIES = {
    Frequency.SECONDLY: _rrule.SECONDLY,
    Frequency.MINUTELY: _rrule.MINUTELY,
    Frequency.HOURLY: _rrule.HOURLY,
    Frequency.DAILY: _rrule.DAILY,
    Frequency.WEEKLY: _rrule.WEEKLY,
    Frequency.MONTHLY: _rrule.MONTHLY,
    Frequency.YEARLY: _rrule.YEARLY,
}

_WEEKDAY_NAMES = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}

# Components copied from the anchor onto an exception, per frequency.
# Everything coarser is taken from the exception itself.
_ALIGNED_FIELDS = {
    Frequency.SECONDLY: (),
    Frequency.MINUTELY: ("second",),
    Frequency.HOURLY: ("minute", "second"),
    Frequency.DAILY: ("hour", "minute", "second"),
    Frequency.WEEKLY: ("hour", "minute", "second"),
    Frequency.MONTHLY: ("day", "hour", "minute", "second"),
    Frequency.YEARLY: ("month", "day", "hour", "minute", "second"),
}


@dataclass(frozen=True)
class RecurrenceRule:
    """A single RRULE: frequency-driven stepping from dtstart through until."""

    frequency: Frequency
    dtstart: datetime
    until: datetime
    by_day: tuple[str, ...] = ()

    def to_rrule(self) -> _rrule.rrule:
        """Build the equivalent dateutil rrule."""
        byweekday = None
        if self.by_day:
            byweekday = [_rrule.weekdays[WEEKDAY_CODES.index(d)] for d in self.by_day]

        return _rrule.rrule(
            _DATEUTIL_FREQUENCIES[self.frequency],
            dtstart=self.dtstart,
            until=self.until,
            byweekday=byweekday,
        )

    def describe(self, date_format: str = DEFAULT_HUMAN_READABLE_FORMAT) -> str:
        """
        Human-readable description of this rule.

        Example:
            "weekly on Monday and Wednesday, starting from Feb 3, 2020, until Feb 17, 2020"
        """
        text = self.frequency.value.lower()
        if self.by_day:
            text += " on " + _join_words([_WEEKDAY_NAMES[d] for d in self.by_day])

        return (
            f"{text}, starting from {format_date(self.dtstart, date_format)}"
            f", until {format_date(self.until, date_format)}"
        )


def format_date(dt: datetime, date_format: str) -> str:
    """Apply a str.format date template, e.g. "{0:%b} {0.day}, {0.year}"."""
    return date_format.format(dt)


def _join_words(words: list[str]) -> str:
    if len(words) <= 1:
        return "".join(words)
    return ", ".join(words[:-1]) + " and " + words[-1]


def align_time(value: Any, anchor: datetime, frequency: Frequency) -> datetime:
    """
    Align an exception timestamp to the anchor at the frequency's granularity.

    Exceptions are often entered with date precision only; copying the finer
    components from the anchor lets them match generated instants. SECONDLY
    exceptions are kept as-is.

    Args:
        value: Exception date-time string (or datetime)
        anchor: Start of the recurrence being excepted
        frequency: Recurrence frequency

    Returns:
        Aligned datetime

    Raises:
        ValueError: If value cannot be parsed or the aligned date is invalid
            (e.g. day 31 in a 30-day month)
    """
    dt = parse_datetime(value)
    fields = _ALIGNED_FIELDS[frequency]
    return dt.replace(**{f: getattr(anchor, f) for f in fields})


def flatten_exceptions(exceptions: Iterable[Any]) -> list[Any]:
    """
    Flatten one level of nesting in raw exception entries.

    Repeater-style data arrives as [{"exception": "2020-09-29"}, ...]; each
    keyed entry is replaced by its values.
    """
    flattened = []
    for row in exceptions or ():
        if isinstance(row, Mapping):
            flattened.extend(row.values())
        elif isinstance(row, (list, tuple)):
            flattened.extend(row)
        else:
            flattened.append(row)
    return flattened


def normalize_exceptions(
    exceptions: Iterable[Any],
    anchor: datetime,
    frequency: Frequency,
) -> list[datetime]:
    """
    Flatten and align exception dates, discarding unparseable ones.

    Args:
        exceptions: Raw exception entries from the series
        anchor: Recurrence anchor (series start)
        frequency: Recurrence frequency

    Returns:
        Aligned exception instants, in input order
    """
    normalized = []
    for raw in flatten_exceptions(exceptions):
        try:
            normalized.append(align_time(raw, anchor, frequency))
        except ValueError as e:
            logger.debug(f"Discarding exception {raw!r}: {e}")
    return normalized


def build_rule_set(
    rules: Iterable[RecurrenceRule],
    exdates: Iterable[datetime] = (),
) -> _rrule.rruleset:
    """
    Union rules into one rule set and subtract excluded instants.

    Args:
        rules: Rules to include
        exdates: Exact instants to exclude

    Returns:
        dateutil rruleset
    """
    rset = _rrule.rruleset()
    for rule in rules:
        rset.rrule(rule.to_rrule())
    for exdate in exdates:
        rset.exdate(exdate)
    return rset


def iter_occurrences(
    rules: Iterable[RecurrenceRule],
    exdates: Iterable[datetime] = (),
) -> Iterator[datetime]:
    """
    Generate start instants for the union of rules, minus exdates.

    Yields instants in ascending order with duplicates across rules merged.
    Generation is lazy; cost is linear in the number of raw instants.
    """
    return iter(build_rule_set(rules, exdates))


def combine_time(day: datetime, clock: Any) -> datetime:
    """
    Put a time-of-day string (or time) onto the date of `day`.

    Raises:
        ValueError: If clock cannot be parsed
    """
    if isinstance(clock, time):
        return datetime.combine(day.date(), clock)
    if not isinstance(clock, str) or not clock.strip():
        raise ValueError(f"Invalid time string: {clock!r}")
    return parse_datetime(f"{day:%Y-%m-%d} {clock.strip()}")


class OverrideDurations:
    """
    Duration lookup table for override rules.

    Two levels: (ISO weekday, start time) for weekday-restricted overrides,
    then start time alone for unrestricted ones.
    """

    def __init__(self):
        self._by_weekday_time: dict[tuple[int, time], timedelta] = {}
        self._by_time: dict[time, timedelta] = {}

    def __bool__(self) -> bool:
        return bool(self._by_weekday_time or self._by_time)

    def add(self, start: datetime, by_day: tuple[str, ...], duration: timedelta) -> None:
        if by_day:
            for code in by_day:
                key = (WEEKDAY_CODES.index(code) + 1, start.time())
                self._by_weekday_time[key] = duration
        else:
            self._by_time[start.time()] = duration

    def lookup(self, instant: datetime) -> Optional[timedelta]:
        """Duration for a generated instant, or None if no override matches."""
        duration = self._by_weekday_time.get((instant.isoweekday(), instant.time()))
        if duration is None:
            duration = self._by_time.get(instant.time())
        return duration
