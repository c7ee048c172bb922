"""Edits of the calendar of a meeting room.

Calendars are never mutated; edits return a new list. :func:`extract_calendar_change`
reports what an edit changed.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from .calendar_events import (
    entry_duration,
    is_rrule_entry,
    is_rrule_override_entry,
    is_single_entry,
)
from .calendar_queries import get_calendar_event
from .config_loader import Config
from .datetime_utils import DateLike, format_ical_date, parse_ical_date, parse_iso
from .models import CalendarEntry, DateTimeEntry

logger = logging.getLogger(__name__)


def _same_recurrence(a: CalendarEntry, b: CalendarEntry) -> bool:
    return (
        a.recurrence_id is not None
        and b.recurrence_id is not None
        and a.uid == b.uid
        and parse_ical_date(a.recurrence_id) == parse_ical_date(b.recurrence_id)
    )


def override_calendar_entries(
    calendar: Sequence[CalendarEntry], new_entry: CalendarEntry
) -> list[CalendarEntry]:
    """Add or replace an entry.

    An override replaces the override of the same occurrence, if any. Recurrence
    ids are compared as instants, so ``Europe/Berlin:20220101T100000`` and
    ``UTC:20220101T090000`` name the same occurrence. A single or series entry
    replaces every entry with its uid, including the overrides of the series.
    """
    if is_rrule_override_entry(new_entry):
        kept = [entry for entry in calendar if not _same_recurrence(entry, new_entry)]
    else:
        # TODO: keep overrides that are still occurrences of the new series
        kept = [entry for entry in calendar if entry.uid != new_entry.uid]

    return [*kept, new_entry]


def delete_calendar_event(
    calendar: Sequence[CalendarEntry],
    uid: str,
    recurrence_id: DateLike,
    tzid: Optional[str] = None,
    config: Optional[Config] = None,
) -> list[CalendarEntry]:
    """Cancel one occurrence of a series.

    The override of the occurrence is removed and the occurrence is added to
    the EXDATE list of the series.

    Args:
        calendar: Entries of a room
        uid: Uid of the series
        recurrence_id: Generated start of the occurrence
        tzid: Zone the EXDATE is written in
        config: Supplies the default EXDATE zone when no ``tzid`` is given.
            Without either, the zone of the series start is used

    Returns:
        The updated entries, or the unchanged entries if there is no such
        occurrence
    """
    if get_calendar_event(calendar, uid, recurrence_id) is None:
        logger.warning("Cannot delete occurrence %s of %s: not found", recurrence_id, uid)
        return list(calendar)

    recurrence_datetime = parse_iso(recurrence_id)
    exdate_tzid = tzid or (config.default_timezone if config is not None else None)
    updated: list[CalendarEntry] = []

    for entry in calendar:
        if (
            is_rrule_override_entry(entry)
            and entry.uid == uid
            and entry.recurrence_id is not None
            and parse_ical_date(entry.recurrence_id) == recurrence_datetime
        ):
            continue

        if entry.uid == uid and is_rrule_entry(entry):
            exdate = format_ical_date(recurrence_datetime, exdate_tzid or entry.dtstart.tzid)
            entry = entry.model_copy(update={"exdate": [*(entry.exdate or []), exdate]})

        updated.append(entry)

    return updated


class CalendarChangeType(str, Enum):
    """Kinds of changes between two versions of the calendar of a meeting."""

    UPDATE_SINGLE_OR_RECURRING_TIME = "updateSingleOrRecurringTime"
    UPDATE_SINGLE_OR_RECURRING_RRULE = "updateSingleOrRecurringRrule"
    ADD_OVERRIDE = "addOverride"
    UPDATE_OVERRIDE = "updateOverride"
    DELETE_OVERRIDE = "deleteOverride"
    ADD_EXDATE = "addExdate"


@dataclass(frozen=True)
class UpdateSingleOrRecurringTimeChange:
    uid: str
    old_dtstart: DateTimeEntry
    old_dtend: DateTimeEntry
    new_dtstart: DateTimeEntry
    new_dtend: DateTimeEntry
    change_type: CalendarChangeType = field(
        default=CalendarChangeType.UPDATE_SINGLE_OR_RECURRING_TIME, init=False
    )


@dataclass(frozen=True)
class UpdateSingleOrRecurringRruleChange:
    uid: str
    old_rrule: Optional[str]
    new_rrule: Optional[str]
    change_type: CalendarChangeType = field(
        default=CalendarChangeType.UPDATE_SINGLE_OR_RECURRING_RRULE, init=False
    )


@dataclass(frozen=True)
class AddOverrideChange:
    """A new override; ``old_dtstart`` and ``old_dtend`` are the generated
    times of the occurrence it replaces."""

    value: CalendarEntry
    old_dtstart: DateTimeEntry
    old_dtend: DateTimeEntry
    change_type: CalendarChangeType = field(default=CalendarChangeType.ADD_OVERRIDE, init=False)


@dataclass(frozen=True)
class UpdateOverrideChange:
    value: CalendarEntry
    old_value: CalendarEntry
    change_type: CalendarChangeType = field(default=CalendarChangeType.UPDATE_OVERRIDE, init=False)


@dataclass(frozen=True)
class DeleteOverrideChange:
    """An override whose occurrence was added to the EXDATE list."""

    value: CalendarEntry
    change_type: CalendarChangeType = field(default=CalendarChangeType.DELETE_OVERRIDE, init=False)


@dataclass(frozen=True)
class AddExdateChange:
    """A generated occurrence added to the EXDATE list."""

    dtstart: DateTimeEntry
    dtend: DateTimeEntry
    change_type: CalendarChangeType = field(default=CalendarChangeType.ADD_EXDATE, init=False)


CalendarChange = Union[
    UpdateSingleOrRecurringTimeChange,
    UpdateSingleOrRecurringRruleChange,
    AddOverrideChange,
    UpdateOverrideChange,
    DeleteOverrideChange,
    AddExdateChange,
]


@dataclass
class _UidEntries:
    single_or_recurring_entry: Optional[CalendarEntry] = None
    overrides: dict[datetime, CalendarEntry] = field(default_factory=dict)


def _instant(value: DateTimeEntry) -> datetime:
    return parse_ical_date(value).astimezone(UTC)


def _shifted(start: DateTimeEntry, duration: timedelta) -> DateTimeEntry:
    return format_ical_date(_instant(start) + duration, start.tzid)


def _index_by_uid(calendar: Sequence[CalendarEntry]) -> dict[str, _UidEntries]:
    index: dict[str, _UidEntries] = {}
    for entry in calendar:
        uid_entries = index.setdefault(entry.uid, _UidEntries())
        if is_single_entry(entry) or is_rrule_entry(entry):
            uid_entries.single_or_recurring_entry = entry
        if entry.recurrence_id is not None:
            uid_entries.overrides[_instant(entry.recurrence_id)] = entry
    return index


def extract_calendar_change(
    calendar: Sequence[CalendarEntry], new_calendar: Sequence[CalendarEntry]
) -> list[CalendarChange]:
    """Compare two versions of the calendar of a meeting.

    Only the changes the meeting editor makes are detected: new start, end or
    rule of a single meeting or series, added, updated and deleted overrides,
    and occurrences added to the EXDATE list of a series. Entries that are
    removed without a trace in ``new_calendar`` are not reported.

    Args:
        calendar: Entries before the edit
        new_calendar: Entries after the edit

    Returns:
        The changes in the order of ``new_calendar``
    """
    index = _index_by_uid(calendar)
    changes: list[CalendarChange] = []

    for new_entry in new_calendar:
        uid_entries = index.get(new_entry.uid, _UidEntries())
        entry = uid_entries.single_or_recurring_entry

        if new_entry.recurrence_id is not None:
            old_override = uid_entries.overrides.get(_instant(new_entry.recurrence_id))
            if old_override is not None:
                if old_override != new_entry:
                    changes.append(UpdateOverrideChange(value=new_entry, old_value=old_override))
            elif entry is not None and is_rrule_entry(entry):
                changes.append(
                    AddOverrideChange(
                        value=new_entry,
                        old_dtstart=new_entry.recurrence_id,
                        old_dtend=_shifted(new_entry.recurrence_id, entry_duration(entry)),
                    )
                )
            continue

        if entry is None:
            continue

        if is_rrule_entry(new_entry) and is_rrule_entry(entry):
            old_exdates = entry.exdate or []
            for exdate in new_entry.exdate or []:
                if exdate in old_exdates:
                    continue
                deleted_override = uid_entries.overrides.get(_instant(exdate))
                if deleted_override is not None:
                    changes.append(DeleteOverrideChange(value=deleted_override))
                else:
                    changes.append(
                        AddExdateChange(
                            dtstart=exdate, dtend=_shifted(exdate, entry_duration(entry))
                        )
                    )

        if (new_entry.dtstart, new_entry.dtend) != (entry.dtstart, entry.dtend):
            changes.append(
                UpdateSingleOrRecurringTimeChange(
                    uid=new_entry.uid,
                    old_dtstart=entry.dtstart,
                    old_dtend=entry.dtend,
                    new_dtstart=new_entry.dtstart,
                    new_dtend=new_entry.dtend,
                )
            )

        if new_entry.rrule != entry.rrule:
            changes.append(
                UpdateSingleOrRecurringRruleChange(
                    uid=new_entry.uid, old_rrule=entry.rrule, new_rrule=new_entry.rrule
                )
            )

    if changes:
        logger.debug(
            "Calendar changes: %s", ", ".join(change.change_type.value for change in changes)
        )
    return changes
