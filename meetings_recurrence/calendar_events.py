"""Expansion of calendar entries into concrete occurrences.

A calendar holds single meetings, series (entries with a recurrence rule) and
overrides (entries with a recurrence id that replace one occurrence of the
series with the same uid). :func:`calculate_calendar_events` turns a calendar
into the occurrences that intersect a query window.

Cancelled occurrences are not represented by a flag. They are removed from a
series through its EXDATE list, see
:func:`meetings_recurrence.calendar_edits.delete_calendar_event`.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

from dateutil.rrule import rruleset

from .datetime_utils import DateLike, parse_ical_date, parse_iso, to_iso_string
from .exceptions import CalendarEntryError, CalendarQueryError, RecurrenceError
from .models import CalendarEntry, Occurrence
from .rrule_codec import RuleOptions, is_finite_series, parse_rrule, to_dateutil_rrule

logger = logging.getLogger(__name__)


def is_single_entry(entry: CalendarEntry) -> bool:
    return entry.rrule is None and entry.recurrence_id is None


def is_rrule_entry(entry: CalendarEntry) -> bool:
    return entry.rrule is not None and entry.recurrence_id is None


def is_rrule_override_entry(entry: CalendarEntry) -> bool:
    return entry.recurrence_id is not None


def is_single_calendar_source_entry(entries: Optional[Sequence[CalendarEntry]]) -> bool:
    """Check if the source entries of an occurrence are a single meeting."""
    return entries is not None and len(entries) == 1 and entries[0].rrule is None


def is_recurring_calendar_source_entry(entries: Optional[Sequence[CalendarEntry]]) -> bool:
    """Check if the source entries of an occurrence are a series, optionally
    followed by the override of the occurrence."""
    if not entries or entries[0].rrule is None:
        return False
    return len(entries) == 1 or entries[1].recurrence_id is not None


def is_recurring_meeting(calendar: Sequence[CalendarEntry]) -> bool:
    """Check if the calendar of a meeting holds more than one occurrence source.

    A calendar with several entries counts as recurring even without a rule.
    """
    if len(calendar) > 1:
        return True
    return bool(calendar) and calendar[0].rrule is not None


def create_time_filter(
    from_date: DateLike, to_date: Optional[DateLike] = None
) -> Callable[[Occurrence], bool]:
    """Return a predicate that keeps occurrences overlapping the window.

    The window is inclusive on both ends while the end of an occurrence is
    exclusive: an occurrence that ends exactly at ``from_date`` is dropped, one
    that starts exactly at ``to_date`` is kept.
    """
    from_datetime = parse_iso(from_date)
    to_datetime = parse_iso(to_date) if to_date is not None else None

    def filter_event(occurrence: Occurrence) -> bool:
        return from_datetime < occurrence.end and (
            to_datetime is None or occurrence.start <= to_datetime
        )

    return filter_event


def entry_duration(entry: CalendarEntry) -> timedelta:
    """Return the elapsed time between ``dtstart`` and ``dtend``."""
    start = parse_ical_date(entry.dtstart).astimezone(UTC)
    end = parse_ical_date(entry.dtend).astimezone(UTC)
    return end - start


@dataclass(frozen=True)
class SeriesRuleSet:
    """The expanded recurrence of one series entry.

    Occurrences are aware datetimes in the zone of the series ``dtstart`` and
    keep its wall-clock time across DST changes.
    """

    entry: CalendarEntry
    rule_options: RuleOptions
    rruleset: rruleset

    @property
    def is_finite(self) -> bool:
        return is_finite_series(self.rule_options)

    def is_occurrence(self, when: datetime) -> bool:
        """Check if ``when`` is a generated, not excluded, occurrence."""
        occurrence = self.rruleset.after(when, inc=True)
        return occurrence is not None and occurrence == when

    def is_override_of_series(self, override: CalendarEntry) -> bool:
        if override.uid != self.entry.uid or override.recurrence_id is None:
            return False
        return self.is_occurrence(parse_ical_date(override.recurrence_id))


def generate_rruleset(entry: CalendarEntry) -> SeriesRuleSet:
    """Build the recurrence set of a series entry, EXDATEs applied.

    Raises:
        CalendarEntryError: If the entry has no rule, or the rule, dates or
            zones of the entry cannot be interpreted
    """
    if entry.rrule is None:
        raise CalendarEntryError(f"Entry {entry.uid!r} is not a series")

    dtstart = parse_ical_date(entry.dtstart)
    try:
        rule_options = parse_rrule(entry.rrule)
    except RecurrenceError as e:
        raise CalendarEntryError(f"Invalid rrule of entry {entry.uid!r}: {e}") from e

    ruleset = rruleset()
    try:
        ruleset.rrule(to_dateutil_rrule(rule_options, dtstart))
    except ValueError as e:
        raise CalendarEntryError(f"Invalid rrule of entry {entry.uid!r}: {e}") from e

    for exdate in entry.exdate or []:
        ruleset.exdate(parse_ical_date(exdate))

    return SeriesRuleSet(entry=entry, rule_options=rule_options, rruleset=ruleset)


def _single_occurrence(entry: CalendarEntry) -> Occurrence:
    return Occurrence(
        uid=entry.uid,
        start_time=to_iso_string(parse_ical_date(entry.dtstart)),
        end_time=to_iso_string(parse_ical_date(entry.dtend)),
        entries=[entry],
    )


def _recurrence_dates(
    series: SeriesRuleSet,
    filter_start: datetime,
    to_date: Optional[datetime],
    limit: Optional[int],
    override_count: int,
) -> list[datetime]:
    if to_date is not None:
        return series.rruleset.between(filter_start, to_date, inc=True)

    if limit is None:
        raise CalendarQueryError("Either limit or to_date must be defined")
    dates: list[datetime] = []
    date = series.rruleset.after(filter_start, inc=True)
    if date is None:
        return dates
    dates.append(date)

    # Overrides may move occurrences out of the result, walk a few more
    for _ in range(1, limit + override_count):
        date = series.rruleset.after(date)
        if date is None:
            break
        dates.append(date)
    return dates


def _expand_series(
    entry: CalendarEntry,
    overrides: Sequence[CalendarEntry],
    from_date: datetime,
    to_date: Optional[datetime],
    limit: Optional[int],
) -> list[Occurrence]:
    series = generate_rruleset(entry)
    duration = entry_duration(entry)

    # Include occurrences that are still running at from_date
    filter_start = from_date.astimezone(UTC) - duration
    recurrence_dates = _recurrence_dates(series, filter_start, to_date, limit, len(overrides))
    logger.debug(
        "Series %s: %d generated occurrences, %d overrides",
        entry.uid,
        len(recurrence_dates),
        len(overrides),
    )

    # recurrence id -> occurrence
    recurrence_events: dict[str, Occurrence] = {}

    for recurrence_date in recurrence_dates:
        recurrence_id = to_iso_string(recurrence_date)
        recurrence_events[recurrence_id] = Occurrence(
            uid=entry.uid,
            start_time=recurrence_id,
            end_time=to_iso_string(recurrence_date.astimezone(UTC) + duration),
            entries=[entry],
            recurrence_id=recurrence_id,
        )

    for override in overrides:
        override_recurrence_id = override.recurrence_id
        if override_recurrence_id is None:
            continue
        if not series.is_override_of_series(override):
            logger.warning(
                "Ignoring override %s of series %s: not an occurrence of the series",
                override_recurrence_id.value,
                entry.uid,
            )
            continue

        recurrence_id = to_iso_string(parse_ical_date(override_recurrence_id))
        recurrence_events[recurrence_id] = Occurrence(
            uid=override.uid,
            start_time=to_iso_string(parse_ical_date(override.dtstart)),
            end_time=to_iso_string(parse_ical_date(override.dtend)),
            entries=[entry, override],
            recurrence_id=recurrence_id,
        )

    return list(recurrence_events.values())


def _sort_key(occurrence: Occurrence) -> tuple[datetime, str, str]:
    return (occurrence.start, occurrence.uid, occurrence.recurrence_id or "")


def calculate_calendar_events(
    calendar: Iterable[CalendarEntry],
    from_date: DateLike,
    to_date: Optional[DateLike] = None,
    limit: Optional[int] = None,
) -> list[Occurrence]:
    """Return the occurrences of a calendar that overlap a window.

    Args:
        calendar: Single, series and override entries of a room
        from_date: Inclusive start of the window. Occurrences that started
            earlier and are still running are included.
        to_date: Inclusive end of the window, may be omitted if ``limit`` is set
        limit: Maximum number of occurrences to return, starting at
            ``from_date``

    Returns:
        Occurrences sorted by start time, then uid, then recurrence id

    Raises:
        CalendarQueryError: If neither ``to_date`` nor ``limit`` is given, or
            ``limit`` is negative
        CalendarEntryError: If an entry cannot be interpreted
    """
    if to_date is None and limit is None:
        raise CalendarQueryError("Either limit or to_date must be defined")
    if limit is not None and limit < 0:
        raise CalendarQueryError(f"limit must not be negative, got {limit}")

    entries = list(calendar)
    from_datetime = parse_iso(from_date)
    to_datetime = parse_iso(to_date) if to_date is not None else None
    filter_event = create_time_filter(from_datetime, to_datetime)

    events: list[Occurrence] = []

    for entry in entries:
        if is_single_entry(entry):
            event = _single_occurrence(entry)
            if filter_event(event):
                events.append(event)

    overrides_by_uid: dict[str, list[CalendarEntry]] = {}
    for entry in entries:
        if is_rrule_override_entry(entry):
            overrides_by_uid.setdefault(entry.uid, []).append(entry)

    for entry in entries:
        if is_rrule_entry(entry):
            series_events = _expand_series(
                entry,
                overrides_by_uid.get(entry.uid, []),
                from_datetime,
                to_datetime,
                limit,
            )
            events.extend(event for event in series_events if filter_event(event))

    events.sort(key=_sort_key)

    if limit is not None:
        return events[:limit]
    return events
