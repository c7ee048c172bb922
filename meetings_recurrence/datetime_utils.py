"""Date-time helpers for calendar entries.

Calendar entries store wall-clock values in the iCalendar basic format
(``20220101T100000``) together with an IANA zone. Occurrences and query
windows use ISO 8601 instants.
"""

import logging
import os
from datetime import UTC, datetime
from functools import lru_cache
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from .exceptions import CalendarEntryError
from .models import DateTimeEntry

logger = logging.getLogger(__name__)

ICAL_DATE_FORMAT = "%Y%m%dT%H%M%S"

TEST_TIME_ENV = "MEETINGS_RECURRENCE_TEST_TIME"

DateLike = Union[str, datetime]


@lru_cache(maxsize=64)
def resolve_timezone(tzid: str) -> ZoneInfo:
    """Return the zone for an IANA identifier.

    Raises:
        CalendarEntryError: If the zone is unknown
    """
    try:
        return ZoneInfo(tzid)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise CalendarEntryError(f"Unknown timezone: {tzid!r}") from e


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Return ``dt`` unchanged if aware, otherwise read it as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_ical_date(entry: DateTimeEntry) -> datetime:
    """Interpret a date-time entry as an aware datetime in its own zone.

    Raises:
        CalendarEntryError: If the zone is unknown or the value is not a date
    """
    tz = resolve_timezone(entry.tzid)
    try:
        value = datetime.strptime(entry.value, ICAL_DATE_FORMAT)
    except ValueError as e:
        raise CalendarEntryError(f"Invalid iCalendar date-time: {entry.value!r}") from e
    return value.replace(tzinfo=tz)


def format_ical_date(value: datetime, tzid: str = "UTC") -> DateTimeEntry:
    """Express an instant as wall-clock time in ``tzid``.

    Naive values are read as UTC.
    """
    local = ensure_timezone_aware(value).astimezone(resolve_timezone(tzid))
    return DateTimeEntry(tzid=tzid, value=local.strftime(ICAL_DATE_FORMAT))


def to_iso_string(value: datetime) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC.

    Milliseconds are included only when they are not zero; anything finer is
    dropped.

    Examples:
        >>> to_iso_string(datetime(2022, 1, 1, 10, tzinfo=UTC))
        '2022-01-01T10:00:00Z'
        >>> to_iso_string(datetime(2022, 1, 1, 23, 59, 59, 999000, tzinfo=UTC))
        '2022-01-01T23:59:59.999Z'
    """
    utc_value = ensure_timezone_aware(value).astimezone(UTC)
    text = utc_value.strftime("%Y-%m-%dT%H:%M:%S")
    milliseconds = utc_value.microsecond // 1000
    if milliseconds:
        text += f".{milliseconds:03d}"
    return text + "Z"


def parse_iso(value: DateLike) -> datetime:
    """Parse an ISO 8601 instant; datetimes are passed through.

    Values without an offset are read as UTC.

    Raises:
        ValueError: If the string is not ISO 8601
    """
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    return ensure_timezone_aware(date_parser.isoparse(value))


def now_utc() -> datetime:
    """Return the current time in UTC.

    Can be pinned for testing via the MEETINGS_RECURRENCE_TEST_TIME environment
    variable, an ISO 8601 date-time such as ``2022-10-27T08:20:00+02:00``.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            return parse_iso(test_time).astimezone(UTC)
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.now(UTC)
