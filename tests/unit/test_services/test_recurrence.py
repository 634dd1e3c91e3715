"""
Unit tests for the recurrence rule engine.

Tests rule building, exception alignment and description rendering.
"""

from datetime import datetime, time, timedelta

import pytest

from src.models.events import Frequency
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


class TestRecurrenceRule:
    """Test RecurrenceRule generation."""

    def test_daily_until_inclusive(self):
        """UNTIL is an inclusive bound."""
        rule = RecurrenceRule(
            Frequency.DAILY, datetime(2026, 1, 1, 10, 0), datetime(2026, 1, 5, 10, 0)
        )

        instants = list(iter_occurrences([rule]))

        assert len(instants) == 5
        assert instants[-1] == datetime(2026, 1, 5, 10, 0)

    def test_keeps_anchor_clock_time(self):
        """Coarse frequencies keep the anchor's exact clock time."""
        rule = RecurrenceRule(
            Frequency.MONTHLY, datetime(2026, 1, 15, 14, 30, 45), datetime(2026, 4, 30)
        )

        instants = list(iter_occurrences([rule]))

        assert instants == [
            datetime(2026, 1, 15, 14, 30, 45),
            datetime(2026, 2, 15, 14, 30, 45),
            datetime(2026, 3, 15, 14, 30, 45),
            datetime(2026, 4, 15, 14, 30, 45),
        ]

    def test_hourly_steps(self):
        """Fine frequencies step by their unit."""
        rule = RecurrenceRule(
            Frequency.HOURLY, datetime(2026, 1, 1, 22, 15), datetime(2026, 1, 2, 1, 15)
        )

        assert list(iter_occurrences([rule]))[-2:] == [
            datetime(2026, 1, 2, 0, 15),
            datetime(2026, 1, 2, 1, 15),
        ]

    def test_until_before_start_is_empty(self):
        """A rule ending before it starts generates nothing."""
        rule = RecurrenceRule(
            Frequency.DAILY, datetime(2026, 2, 1, 10, 0), datetime(2026, 1, 1)
        )

        assert list(iter_occurrences([rule])) == []

    def test_by_day_restriction(self):
        """BYDAY limits generated instants to the given weekdays."""
        # 2026-01-05 is a Monday
        rule = RecurrenceRule(
            Frequency.DAILY,
            datetime(2026, 1, 5, 9, 0),
            datetime(2026, 1, 11, 23, 59),
            by_day=("MO", "WE", "FR"),
        )

        instants = list(iter_occurrences([rule]))

        assert [i.day for i in instants] == [5, 7, 9]


class TestRuleSet:
    """Test unions and exclusions."""

    def test_union_is_sorted_and_deduplicated(self):
        """Instants from several rules merge in order, without duplicates."""
        until = datetime(2026, 1, 3, 23, 59)
        morning = RecurrenceRule(Frequency.DAILY, datetime(2026, 1, 1, 9, 0), until)
        evening = RecurrenceRule(Frequency.DAILY, datetime(2026, 1, 1, 18, 0), until)

        instants = list(iter_occurrences([evening, morning, morning]))

        assert instants == [
            datetime(2026, 1, 1, 9, 0),
            datetime(2026, 1, 1, 18, 0),
            datetime(2026, 1, 2, 9, 0),
            datetime(2026, 1, 2, 18, 0),
            datetime(2026, 1, 3, 9, 0),
            datetime(2026, 1, 3, 18, 0),
        ]

    def test_exdate_exact_match_only(self):
        """EXDATE removes only the exact instant."""
        rule = RecurrenceRule(
            Frequency.DAILY, datetime(2026, 1, 1, 9, 0), datetime(2026, 1, 3, 9, 0)
        )

        rset = build_rule_set(
            [rule], [datetime(2026, 1, 2, 9, 0), datetime(2026, 1, 3, 9, 1)]
        )

        assert list(rset) == [datetime(2026, 1, 1, 9, 0), datetime(2026, 1, 3, 9, 0)]


class TestDescribe:
    """Test human-readable descriptions."""

    def test_default_format(self):
        rule = RecurrenceRule(
            Frequency.WEEKLY, datetime(2020, 2, 3, 10, 0), datetime(2020, 2, 17, 14, 0)
        )

        assert rule.describe() == "weekly, starting from Feb 3, 2020, until Feb 17, 2020"

    def test_weekday_list(self):
        rule = RecurrenceRule(
            Frequency.WEEKLY,
            datetime(2020, 2, 3, 10, 0),
            datetime(2020, 2, 17, 14, 0),
            by_day=("MO", "WE", "FR"),
        )

        assert rule.describe("{0:%Y-%m-%d}") == (
            "weekly on Monday, Wednesday and Friday, starting from 2020-02-03"
            ", until 2020-02-17"
        )

    def test_format_date(self):
        assert format_date(datetime(2020, 2, 3), "{0.month}/{0.day}/{0:%y}") == "2/3/20"


class TestAlignTime:
    """Test exception alignment per frequency."""

    ANCHOR = datetime(2020, 1, 5, 12, 34, 56)

    @pytest.mark.parametrize(
        "frequency,value,expected",
        [
            (Frequency.SECONDLY, "2020-03-07 08:09:10", datetime(2020, 3, 7, 8, 9, 10)),
            (Frequency.MINUTELY, "2020-03-07 08:09:10", datetime(2020, 3, 7, 8, 9, 56)),
            (Frequency.HOURLY, "2020-03-07 08:09:10", datetime(2020, 3, 7, 8, 34, 56)),
            (Frequency.DAILY, "2020-03-07", datetime(2020, 3, 7, 12, 34, 56)),
            (Frequency.WEEKLY, "2020-03-07 00:00:00", datetime(2020, 3, 7, 12, 34, 56)),
            (Frequency.MONTHLY, "2020-03-20", datetime(2020, 3, 5, 12, 34, 56)),
            (Frequency.YEARLY, "2023-09", datetime(2023, 1, 5, 12, 34, 56)),
        ],
    )
    def test_alignment(self, frequency, value, expected):
        assert align_time(value, self.ANCHOR, frequency) == expected

    def test_offset_discarded(self):
        """UTC offsets are dropped, not converted."""
        aligned = align_time("2020-09-28 00:00:00-08:00", self.ANCHOR, Frequency.DAILY)

        assert aligned == datetime(2020, 9, 28, 12, 34, 56)

    def test_invalid_aligned_date_raises(self):
        """Day 31 cannot be aligned into a 30-day month."""
        anchor = datetime(2020, 1, 31, 9, 0)

        with pytest.raises(ValueError):
            align_time("2020-04-10", anchor, Frequency.MONTHLY)

    def test_unparseable_raises(self):
        with pytest.raises(ValueError):
            align_time("garbage", self.ANCHOR, Frequency.DAILY)


class TestNormalizeExceptions:
    """Test flattening and filtering of raw exceptions."""

    def test_flatten_nested_rows(self):
        rows = ["2020-01-01", {"exception": "2020-01-02"}, ["2020-01-03"]]

        assert flatten_exceptions(rows) == ["2020-01-01", "2020-01-02", "2020-01-03"]

    def test_flatten_empty(self):
        assert flatten_exceptions(None) == []

    def test_discards_unparseable(self):
        anchor = datetime(2020, 1, 1, 10, 0)

        normalized = normalize_exceptions(
            ["2020-01-02", "", None, "nope", {"exception": "2020-01-04"}],
            anchor,
            Frequency.DAILY,
        )

        assert normalized == [datetime(2020, 1, 2, 10, 0), datetime(2020, 1, 4, 10, 0)]


class TestCombineTime:
    """Test putting override clock times onto a base date."""

    def test_string_time(self):
        assert combine_time(datetime(2020, 3, 2, 9, 0), "13:30:00") == datetime(
            2020, 3, 2, 13, 30
        )

    def test_time_object(self):
        assert combine_time(datetime(2020, 3, 2), time(7, 15)) == datetime(2020, 3, 2, 7, 15)

    @pytest.mark.parametrize("clock", ["", None, "half past never"])
    def test_invalid(self, clock):
        with pytest.raises(ValueError):
            combine_time(datetime(2020, 3, 2), clock)


class TestOverrideDurations:
    """Test the two-level override duration lookup."""

    def test_weekday_time_before_time(self):
        durations = OverrideDurations()
        # 2020-03-02 is a Monday
        durations.add(datetime(2020, 3, 2, 9, 0), (), timedelta(hours=1))
        durations.add(datetime(2020, 3, 2, 9, 0), ("FR",), timedelta(hours=3))

        assert durations.lookup(datetime(2020, 3, 6, 9, 0)) == timedelta(hours=3)
        assert durations.lookup(datetime(2020, 3, 3, 9, 0)) == timedelta(hours=1)

    def test_no_match(self):
        durations = OverrideDurations()
        durations.add(datetime(2020, 3, 2, 9, 0), ("MO",), timedelta(hours=1))

        assert durations.lookup(datetime(2020, 3, 2, 10, 0)) is None
        assert durations.lookup(datetime(2020, 3, 3, 9, 0)) is None

    def test_zero_duration_found(self):
        """A zero-length override is a match, not a miss."""
        durations = OverrideDurations()
        durations.add(datetime(2020, 3, 2, 9, 0), ("MO",), timedelta(0))

        assert durations.lookup(datetime(2020, 3, 9, 9, 0)) == timedelta(0)

    def test_truthiness(self):
        durations = OverrideDurations()
        assert not durations

        durations.add(datetime(2020, 3, 2, 9, 0), (), timedelta(hours=1))
        assert durations
