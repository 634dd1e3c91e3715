"""
Pytest configuration and fixtures for Greg recurrence tests.

Provides sample event series records and a settings cache reset.
"""

from typing import Generator

import pytest

from src.config import get_settings
from src.services.calendar import CalendarOptions


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """
    Reset the cached Settings around each test.

    Tests that monkeypatch environment variables would otherwise see
    settings loaded by an earlier test.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def options() -> CalendarOptions:
    """Calendar options independent of the environment."""
    return CalendarOptions()


@pytest.fixture
def unique_event() -> dict:
    """
    A single non-recurring event, 10am - 2pm.

    Returns:
        dict: Raw event series record
    """
    return {
        "start": "2020-02-03 10:00:00",
        "end": "2020-02-03 14:00:00",
        "title": "My Unique Event",
        "recurrence_description": "",
    }


@pytest.fixture
def weekly_event() -> dict:
    """
    A weekly event, 10am - 2pm, recurring three times.

    Returns:
        dict: Raw event series record
    """
    return {
        "start": "2020-02-03 10:00:00",
        "end": "2020-02-03 14:00:00",
        "title": "My Recurring Event",
        "recurrence": {
            "until": "2020-02-17 14:00:00",
            "frequency": "Weekly",
        },
    }


@pytest.fixture
def long_daily_event() -> dict:
    """
    A daily event running from late September to mid November 2020.

    Returns:
        dict: Raw event series record
    """
    return {
        "start": "2020-09-25 12:00:00",
        "end": "2020-09-25 12:30:00",
        "title": "Recurring Event",
        "recurrence": {
            "until": "2020-11-15 12:00:00",
            "frequency": "daily",
            "exceptions": [],
        },
        "recurrence_description": "Daily for a long time",
    }
