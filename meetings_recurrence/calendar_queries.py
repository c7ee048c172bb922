"""Queries over the calendar of a meeting room."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Literal, Optional, Union

from .calendar_events import (
    calculate_calendar_events,
    entry_duration,
    generate_rruleset,
    is_rrule_entry,
    is_rrule_override_entry,
    is_single_entry,
)
from .datetime_utils import DateLike, format_ical_date, now_utc, parse_ical_date, parse_iso, to_iso_string
from .models import CalendarEntry, Occurrence

logger = logging.getLogger(__name__)


class CalendarEnd(Enum):
    """Marker for calendars that contain a series without end."""

    INFINITE = "infinite"


INFINITE = CalendarEnd.INFINITE


def get_calendar_end(
    calendar: Sequence[CalendarEntry],
) -> Union[datetime, Literal[CalendarEnd.INFINITE], None]:
    """Return the end of the last occurrence of a calendar.

    Single meetings, finite series and the overrides that belong to them are
    considered.

    Returns:
        The latest end, :data:`INFINITE` if any series never ends, or None for
        a calendar without occurrences
    """
    end_dates = [parse_ical_date(entry.dtend) for entry in calendar if is_single_entry(entry)]

    for entry in calendar:
        if not is_rrule_entry(entry):
            continue

        series = generate_rruleset(entry)
        if not series.is_finite:
            return INFINITE

        occurrences = list(series.rruleset)
        if not occurrences:
            continue

        end_dates.append(occurrences[-1].astimezone(UTC) + entry_duration(entry))
        end_dates.extend(
            parse_ical_date(override.dtend)
            for override in calendar
            if is_rrule_override_entry(override) and series.is_override_of_series(override)
        )

    if not end_dates:
        return None
    return max(end_dates)


def _find_override(
    calendar: Sequence[CalendarEntry], uid: Optional[str], recurrence_id: datetime
) -> Optional[CalendarEntry]:
    for entry in calendar:
        if (
            is_rrule_override_entry(entry)
            and entry.uid == uid
            and entry.recurrence_id is not None
            and parse_ical_date(entry.recurrence_id) == recurrence_id
        ):
            return entry
    return None


def get_calendar_event(
    calendar: Sequence[CalendarEntry],
    uid: Optional[str] = None,
    recurrence_id: Optional[DateLike] = None,
    now: Optional[DateLike] = None,
) -> Optional[Occurrence]:
    """Return one occurrence of a calendar.

    With ``recurrence_id`` the occurrence of that series position is returned,
    taking overrides into account. Otherwise the occurrence that is running or
    comes next at ``now`` is returned, or the last one if the calendar has
    already ended.

    Args:
        calendar: Entries of a room
        uid: Only consider entries with this uid
        recurrence_id: Generated start of the occurrence to look up
        now: Reference time, the current time by default
    """
    related_calendar = [c for c in calendar if uid is None or c.uid == uid]

    if recurrence_id is not None:
        recurrence_datetime = parse_iso(recurrence_id)
        override = _find_override(calendar, uid, recurrence_datetime)

        # Only consider occurrences that overlap the override or the
        # generated start
        if override is not None:
            from_date: DateLike = parse_ical_date(override.dtstart)
            to_date: DateLike = parse_ical_date(override.dtend)
        else:
            from_date = to_date = recurrence_datetime

        key = to_iso_string(recurrence_datetime)
        events = calculate_calendar_events(related_calendar, from_date, to_date)
        # Several meetings may overlap, pick the one at that position
        return next((event for event in events if event.recurrence_id == key), None)

    reference = parse_iso(now) if now is not None else now_utc()
    events = calculate_calendar_events(related_calendar, reference, limit=1)
    if events:
        return events[0]

    calendar_end = get_calendar_end(related_calendar)
    if isinstance(calendar_end, datetime) and calendar_end < reference:
        # The end is exclusive, search slightly before it
        events = calculate_calendar_events(
            related_calendar, calendar_end - timedelta(milliseconds=1), limit=1
        )
        if events:
            return events[0]

    logger.debug("No occurrence found for uid=%s", uid)
    return None


def normalize_calendar_entry(entry: CalendarEntry) -> CalendarEntry:
    """Move ``dtstart`` and ``dtend`` onto the first real occurrence.

    A series may start on a date that does not match its rule, e.g. a Sunday
    ``dtstart`` with ``BYDAY=MO``. The first occurrence then is the Monday.
    Entries without occurrences are returned unchanged.
    """
    events = calculate_calendar_events([entry], parse_ical_date(entry.dtstart), limit=1)
    if not events:
        return entry

    first_event = events[0]
    return entry.model_copy(
        update={
            "dtstart": format_ical_date(first_event.start, entry.dtstart.tzid),
            "dtend": format_ical_date(first_event.end, entry.dtend.tzid),
        }
    )
