"""
Event listing entry point.

Glues the query window builder, an injected series source and the Calendar:

    query -> fetch_series(query) -> Calendar.recurrences(constraints)

The series source owns storage access and custom field names; records it
returns are normalized to the EventSeries shape here.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Union

from src.exceptions import SeriesParseError
from src.models.events import EventSeries, Occurrence
from src.services.calendar import Calendar, CalendarOptions
from src.services.event_query import EventQuery, EventQueryParams, FieldNames

logger = logging.getLogger(__name__)

SeriesSource = Callable[[EventQuery], Iterable[Mapping]]


def normalize_record(record: Mapping, field_names: FieldNames) -> dict:
    """
    Map a stored record onto the EventSeries shape.

    Recurrence rules are attached only when both until and frequency are
    present. Fields other than the mapped ones are kept as payload.

    Args:
        record: Raw record from the series source
        field_names: Storage key names

    Returns:
        Record keyed by start/end/recurrence/recurrence_description
    """
    until = record.get(field_names.until)
    frequency = record.get(field_names.frequency)

    recurrence = {}
    if until and frequency:
        recurrence = {
            "until": until,
            "frequency": frequency,
            "exceptions": record.get(field_names.exceptions) or [],
        }
        overrides = record.get(field_names.overrides)
        if overrides:
            recurrence["overrides"] = overrides

    normalized = dict(record)
    normalized.update(
        start=record.get(field_names.start),
        end=record.get(field_names.end),
        recurrence=recurrence,
        recurrence_description=record.get(field_names.recurrence_description),
    )
    return normalized


def get_events(
    params: Union[EventQueryParams, Mapping],
    fetch_series: SeriesSource,
    options: Union[CalendarOptions, Mapping, None] = None,
) -> list[Occurrence]:
    """
    Query event series and expand them into occurrences.

    Args:
        params: Listing parameters (current_time is required)
        fetch_series: Series source; receives the EventQuery and returns
            candidate records (see EventQuery.params())
        options: Calendar options

    Returns:
        Occurrences sorted by start, or one occurrence per series when
        expand_recurrences is False

    Raises:
        InvalidInputError: If current_time, start_date or end_date is invalid
    """
    query = EventQuery(params)
    records = [normalize_record(r, query.field_names) for r in fetch_series(query)]
    if not records:
        return []

    if query.expand_recurrences:
        return Calendar(records, options).recurrences(query.recurrence_constraints())

    # Skip expansion; each series as a whole
    events = []
    for record in records:
        try:
            events.append(Occurrence.from_series(EventSeries.from_record(record)))
        except SeriesParseError as e:
            logger.warning(f"Skipping event series {record.get('title')!r}: {e.message}")
    return events
