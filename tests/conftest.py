"""Shared fixtures for the recurrence engine tests."""

import logging
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any, Optional

import pytest

from meetings_recurrence.models import CalendarEntry, DateTimeEntry
from meetings_recurrence.recurrence_logging import ENGINE_MODULES, QUIET_LOGGERS

ENV_VARS = [
    "MEETINGS_RECURRENCE_DEBUG",
    "MEETINGS_RECURRENCE_LOG_LEVEL",
    "MEETINGS_RECURRENCE_WEEK_START",
    "MEETINGS_RECURRENCE_DEFAULT_TIMEZONE",
    "MEETINGS_RECURRENCE_TEST_TIME",
]


def pytest_configure(config: Any) -> None:
    """Register the test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests without I/O")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Restore logger levels and root handlers changed by a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    levels = {
        name: logging.getLogger(name).level
        for name in [*ENGINE_MODULES, *QUIET_LOGGERS]
    }
    root_level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(root_level)
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def start_date() -> datetime:
    """A Friday, the first Friday of October 2022."""
    return datetime(2022, 10, 7, 14, 15, tzinfo=UTC)


def make_entry(
    uid: str = "entry-0",
    dtstart: str = "20220101T100000",
    dtend: str = "20220101T140000",
    tzid: str = "UTC",
    rrule: Optional[str] = None,
    exdate: Optional[list[str]] = None,
    recurrence_id: Optional[str] = None,
) -> CalendarEntry:
    """Build a calendar entry whose dates all share one zone."""
    return CalendarEntry(
        uid=uid,
        dtstart=DateTimeEntry(tzid=tzid, value=dtstart),
        dtend=DateTimeEntry(tzid=tzid, value=dtend),
        rrule=rrule,
        exdate=[DateTimeEntry(tzid=tzid, value=value) for value in exdate] if exdate else None,
        recurrence_id=DateTimeEntry(tzid=tzid, value=recurrence_id) if recurrence_id else None,
    )


@pytest.fixture
def entry_factory() -> Callable[..., CalendarEntry]:
    return make_entry
