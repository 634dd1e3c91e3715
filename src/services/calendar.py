"""
Recurrence expansion service.

Turns event series into concrete occurrences:
- Expands each series' recurrence rules (simple or per-override)
- Subtracts aligned exception dates
- Filters occurrences through a constraint window
- Sorts all occurrences from all series by start time

Calendar is not responsible for querying events, only for translating their
recurrence rules into separate instances. A malformed series is logged and
skipped; it never aborts the batch.
"""

import copy
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from src.config import DEFAULT_HUMAN_READABLE_FORMAT, Settings, get_settings
from src.exceptions import SeriesParseError
from src.models.base import format_datetime, parse_datetime
from src.models.constraints import Constraint
from src.models.events import EventSeries, Frequency, Occurrence
from src.services.recurrence import (
    OverrideDurations,
    RecurrenceRule,
    combine_time,
    iter_occurrences,
    normalize_exceptions,
)

logger = logging.getLogger(__name__)

SeriesLike = Union[EventSeries, Mapping]
ConstraintLike = Union[Constraint, Mapping, None]

# Window that no occurrence satisfies (invalid constraints or event_month)
_NOTHING = object()


class CalendarOptions(BaseModel):
    """Options for a Calendar instance."""

    human_readable_format: str = Field(
        default=DEFAULT_HUMAN_READABLE_FORMAT,
        description="str.format template for dates in generated descriptions",
    )
    filter_non_recurring: bool = Field(
        default=False,
        description="Apply the constraint window to non-recurring series too",
    )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CalendarOptions":
        settings = settings or get_settings()
        return cls(
            human_readable_format=settings.human_readable_format,
            filter_non_recurring=settings.filter_non_recurring,
        )


class Calendar:
    """
    Expands zero or more event series into individual recurrences.

    Holds no state between calls beyond its series and options; each call to
    recurrences() allocates new Occurrence objects.
    """

    def __init__(
        self,
        series: Iterable[SeriesLike],
        options: Union[CalendarOptions, Mapping, None] = None,
    ):
        self._series = list(series)
        if options is None:
            options = CalendarOptions.from_settings()
        elif isinstance(options, Mapping):
            options = CalendarOptions.model_validate(options)
        self.options = options

    def recurrences(self, constraints: ConstraintLike = None) -> list[Occurrence]:
        """
        Get every series parsed out into individual recurrences.

        Args:
            constraints: Optional window limiting recurrences by start, for
                example when multi-month recurring series show up in a
                single month's query results

        Returns:
            Occurrences from all series, stably sorted by start
        """
        window = _resolve_window(constraints)

        occurrences: list[Occurrence] = []
        for index, raw in enumerate(self._series):
            try:
                occurrences.extend(self._expand_series(raw, window))
            except SeriesParseError as e:
                logger.warning(
                    f"Skipping event series #{index} ({_title_of(raw)!r}): {e.message}"
                )

        occurrences.sort(key=lambda o: _start_key(o.start) or "")

        logger.debug(
            f"Expanded {len(self._series)} event series into {len(occurrences)} occurrences"
        )
        return occurrences

    def _expand_series(self, raw: SeriesLike, window) -> list[Occurrence]:
        series = EventSeries.coerce(raw)

        if series.recurrence is None:
            occurrence = Occurrence.from_series(series)
            if self.options.filter_non_recurring and not _satisfies(occurrence, window):
                return []
            return [occurrence]

        recurrence = series.recurrence
        start = _parse_field(series.start, "start")
        end = _parse_field(series.end, "end")
        until = _parse_field(recurrence.until, "until")
        try:
            frequency = Frequency.parse(recurrence.frequency)
        except ValueError as e:
            raise SeriesParseError(str(e), e) from e

        duration = end - start
        override_durations = OverrideDurations()

        if recurrence.overrides:
            rules = []
            for override in recurrence.overrides:
                try:
                    override_start = combine_time(start, override.start)
                    override_end = combine_time(start, override.end)
                except ValueError as e:
                    raise SeriesParseError(f"Invalid override time: {e}", e) from e

                override_durations.add(
                    override_start, override.by_day, override_end - override_start
                )
                rules.append(
                    RecurrenceRule(frequency, override_start, until, override.by_day)
                )
        else:
            rules = [RecurrenceRule(frequency, start, until)]

        exdates = normalize_exceptions(recurrence.exceptions, start, frequency)
        description = self.describe(series, rules[0])

        occurrences = []
        try:
            for instant in iter_occurrences(rules, exdates):
                occurrence = Occurrence(
                    start=format_datetime(instant),
                    end=format_datetime(
                        instant + self._duration_for(instant, override_durations, duration)
                    ),
                    recurrence_description=description,
                    payload=copy.deepcopy(series.payload),
                )
                if _satisfies(occurrence, window):
                    occurrences.append(occurrence)
        except (ValueError, OverflowError) as e:
            # Date arithmetic past datetime.max and the like
            raise SeriesParseError(f"Recurrence expansion failed: {e}", e) from e

        return occurrences

    @staticmethod
    def _duration_for(
        instant: datetime,
        override_durations: OverrideDurations,
        duration: timedelta,
    ) -> timedelta:
        if not override_durations:
            return duration

        override_duration = override_durations.lookup(instant)
        if override_duration is None:
            # No override matched this instant; use the series duration
            logger.debug(f"No override duration for {instant}; using series duration")
            return duration
        return override_duration

    def describe(self, series: EventSeries, rule: RecurrenceRule) -> str:
        """
        Get the human-readable recurrence description for a series.

        Uses the series' own description when set, otherwise renders one
        from the rule.
        """
        if series.recurrence_description:
            return series.recurrence_description
        return rule.describe(self.options.human_readable_format)


def expand(
    series: Iterable[SeriesLike],
    constraints: ConstraintLike = None,
    options: Union[CalendarOptions, Mapping, None] = None,
) -> list[Occurrence]:
    """
    Expand event series into occurrences sorted by start.

    Shorthand for Calendar(series, options).recurrences(constraints).
    """
    return Calendar(series, options).recurrences(constraints)


def _coerce_constraint(constraints: ConstraintLike) -> Constraint:
    if constraints is None:
        return Constraint()
    if isinstance(constraints, Constraint):
        return constraints
    if isinstance(constraints, Mapping):
        constraints = dict(constraints)
    return Constraint.model_validate(constraints)


def _resolve_window(constraints: ConstraintLike):
    try:
        constraint = _coerce_constraint(constraints)
    except ValidationError as e:
        logger.warning(f"Invalid constraints {constraints!r}; matching nothing: {e}")
        return _NOTHING

    try:
        return constraint.window()
    except ValueError as e:
        logger.debug(f"Unparseable event_month {constraint.event_month!r}: {e}")
        return _NOTHING


def _satisfies(occurrence: Occurrence, window) -> bool:
    """Whether the occurrence's start falls within the resolved window."""
    if window is _NOTHING:
        return False

    earliest, latest = window
    start = _start_key(occurrence.start)
    if start is None:
        # Stored start we cannot place; only an unbounded window keeps it
        return not (earliest or latest)
    if earliest and start < earliest:
        return False
    if latest and start > latest:
        return False
    return True


def _start_key(start: Any) -> Optional[str]:
    if isinstance(start, datetime):
        return format_datetime(start)
    if isinstance(start, str):
        return start
    return None


def _parse_field(value: Any, name: str) -> datetime:
    try:
        return parse_datetime(value)
    except ValueError as e:
        raise SeriesParseError(f"Invalid {name}: {value!r}", e) from e


def _title_of(raw: SeriesLike) -> Optional[str]:
    if isinstance(raw, EventSeries):
        return raw.title
    if isinstance(raw, Mapping):
        return raw.get("title")
    return None
