"""
Service layer for Greg recurrence expansion.

Provides:
- Recurrence rule engine (RRULE/RSET via python-dateutil)
- Calendar expansion of event series into occurrences
- Event query window building
- The get_events listing entry point
"""

from src.services.recurrence import (
    OverrideDurations,
    RecurrenceRule,
    align_time,
    build_rule_set,
    combine_time,
    flatten_exceptions,
    format_date,
    iter_occurrences,
    normalize_exceptions,
)

from src.services.calendar import (
    Calendar,
    CalendarOptions,
    expand,
)

from src.services.event_query import (
    CategoryPredicate,
    DatePredicate,
    EventQuery,
    EventQueryParams,
    FieldNames,
    PredicateGroup,
    StorageQuery,
    event_month,
    next_month,
    prev_month,
)

from src.services.events import (
    get_events,
    normalize_record,
)

__all__ = [
    # Recurrence
    "OverrideDurations",
    "RecurrenceRule",
    "align_time",
    "build_rule_set",
    "combine_time",
    "flatten_exceptions",
    "format_date",
    "iter_occurrences",
    "normalize_exceptions",
    # Calendar
    "Calendar",
    "CalendarOptions",
    "expand",
    # Event query
    "CategoryPredicate",
    "DatePredicate",
    "EventQuery",
    "EventQueryParams",
    "FieldNames",
    "PredicateGroup",
    "StorageQuery",
    "event_month",
    "next_month",
    "prev_month",
    # Listing
    "get_events",
    "normalize_record",
]
