"""Tests for meetings_recurrence.calendar_edits."""

import logging

import pytest

from meetings_recurrence.calendar_edits import (
    AddExdateChange,
    AddOverrideChange,
    CalendarChangeType,
    DeleteOverrideChange,
    UpdateOverrideChange,
    UpdateSingleOrRecurringRruleChange,
    UpdateSingleOrRecurringTimeChange,
    delete_calendar_event,
    extract_calendar_change,
    override_calendar_entries,
)
from meetings_recurrence.calendar_events import calculate_calendar_events
from meetings_recurrence.config_loader import Config, load_config
from meetings_recurrence.models import DateTimeEntry

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.fixture
def other_entry(entry_factory):
    """An unrelated meeting that edits must keep."""
    return entry_factory(uid="entry-1", dtstart="20200109T150000", dtend="20200109T160000")


class TestOverrideCalendarEntries:
    """Tests for override_calendar_entries."""

    def test_update_single_entry(self, entry_factory, other_entry):
        calendar = [
            entry_factory(dtstart="20200109T100000", dtend="20200109T110000"),
            other_entry,
        ]
        new_entry = entry_factory(dtstart="20200111T100000", dtend="20200111T110000")
        assert override_calendar_entries(calendar, new_entry) == [other_entry, new_entry]

    def test_update_series(self, entry_factory, other_entry):
        calendar = [
            entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"),
            other_entry,
        ]
        new_entry = entry_factory(
            dtstart="20200111T100000", dtend="20200111T110000", rrule="FREQ=DAILY"
        )
        assert override_calendar_entries(calendar, new_entry) == [other_entry, new_entry]

    def test_update_series_drops_its_overrides(self, entry_factory, other_entry):
        calendar = [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=["20200110T100000"],
            ),
            entry_factory(
                dtstart="20200111T120000",
                dtend="20200111T130000",
                recurrence_id="20200111T100000",
            ),
            other_entry,
        ]
        new_entry = entry_factory(
            dtstart="20200111T100000", dtend="20200111T110000", rrule="FREQ=DAILY"
        )
        assert override_calendar_entries(calendar, new_entry) == [other_entry, new_entry]

    def test_add_override(self, entry_factory, other_entry):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        override = entry_factory(
            dtstart="20200110T120000",
            dtend="20200110T130000",
            rrule="FREQ=DAILY",
            recurrence_id="20200110T100000",
        )
        assert override_calendar_entries([series, other_entry], override) == [
            series,
            other_entry,
            override,
        ]

    def test_replace_override_of_the_same_occurrence(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        first = entry_factory(
            dtstart="20200110T120000",
            dtend="20200110T130000",
            recurrence_id="20200110T100000",
        )
        second = entry_factory(
            dtstart="20200110T140000",
            dtend="20200110T150000",
            recurrence_id="20200110T100000",
        )
        other_occurrence = entry_factory(
            dtstart="20200111T140000",
            dtend="20200111T150000",
            recurrence_id="20200111T100000",
        )
        calendar = [series, first, other_occurrence]
        assert override_calendar_entries(calendar, second) == [series, other_occurrence, second]

    def test_recurrence_ids_are_compared_as_instants(self, entry_factory):
        first = entry_factory(
            dtstart="20200110T120000",
            dtend="20200110T130000",
            tzid="Europe/Berlin",
            recurrence_id="20200110T110000",
        )
        second = entry_factory(
            dtstart="20200110T140000",
            dtend="20200110T150000",
            recurrence_id="20200110T100000",
        )
        assert override_calendar_entries([first], second) == [second]

    def test_calendar_is_not_mutated(self, entry_factory, other_entry):
        calendar = [other_entry]
        override_calendar_entries(calendar, entry_factory())
        assert calendar == [other_entry]


class TestDeleteCalendarEvent:
    """Tests for delete_calendar_event."""

    def test_empty_calendar(self):
        assert delete_calendar_event([], "entry-0", "2020-01-10T10:00:00Z") == []

    def test_delete_occurrence(self, entry_factory, other_entry):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        updated = delete_calendar_event([series, other_entry], "entry-0", "2020-01-10T10:00:00Z")
        assert updated == [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=["20200110T100000"],
            ),
            other_entry,
        ]

    def test_delete_occurrence_with_existing_exdate(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000",
            dtend="20200109T110000",
            rrule="FREQ=DAILY",
            exdate=["20200111T100000"],
        )
        updated = delete_calendar_event([series], "entry-0", "2020-01-10T10:00:00Z")
        assert [exdate.value for exdate in updated[0].exdate] == [
            "20200111T100000",
            "20200110T100000",
        ]

    def test_delete_removes_the_override(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        override = entry_factory(
            dtstart="20200110T120000",
            dtend="20200110T130000",
            rrule="FREQ=DAILY",
            recurrence_id="20200110T100000",
        )
        kept_override = entry_factory(
            dtstart="20200111T120000",
            dtend="20200111T130000",
            rrule="FREQ=DAILY",
            recurrence_id="20200111T100000",
        )
        updated = delete_calendar_event(
            [series, override, kept_override], "entry-0", "2020-01-10T10:00:00Z"
        )
        assert len(updated) == 2
        assert updated[0].exdate == [DateTimeEntry(tzid="UTC", value="20200110T100000")]
        assert updated[1] == kept_override

    def test_exdate_is_written_in_the_zone_of_the_series(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000",
            dtend="20200109T110000",
            tzid="Europe/Berlin",
            rrule="FREQ=DAILY",
        )
        updated = delete_calendar_event([series], "entry-0", "2020-01-10T09:00:00Z")
        assert updated[0].exdate == [DateTimeEntry(tzid="Europe/Berlin", value="20200110T100000")]

    def test_exdate_zone_can_be_chosen(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000",
            dtend="20200109T110000",
            tzid="Europe/Berlin",
            rrule="FREQ=DAILY",
        )
        updated = delete_calendar_event(
            [series], "entry-0", "2020-01-10T09:00:00Z", tzid="America/New_York"
        )
        assert updated[0].exdate == [
            DateTimeEntry(tzid="America/New_York", value="20200110T040000")
        ]

    def test_exdate_zone_from_config(self, entry_factory, tmp_path):
        path = tmp_path / "meetings_recurrence.yaml"
        path.write_text("default_timezone: America/New_York\n")
        series = entry_factory(
            dtstart="20200109T100000",
            dtend="20200109T110000",
            tzid="Europe/Berlin",
            rrule="FREQ=DAILY",
        )

        updated = delete_calendar_event(
            [series], "entry-0", "2020-01-10T09:00:00Z", config=load_config(str(path))
        )

        assert updated[0].exdate == [
            DateTimeEntry(tzid="America/New_York", value="20200110T040000")
        ]

    def test_explicit_zone_wins_over_config(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        updated = delete_calendar_event(
            [series],
            "entry-0",
            "2020-01-10T10:00:00Z",
            tzid="Europe/Berlin",
            config=Config(default_timezone="America/New_York"),
        )
        assert updated[0].exdate == [DateTimeEntry(tzid="Europe/Berlin", value="20200110T110000")]

    def test_unknown_occurrence_is_skipped(self, entry_factory, caplog):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        with caplog.at_level(logging.WARNING, logger="meetings_recurrence.calendar_edits"):
            updated = delete_calendar_event([series], "entry-0", "2020-01-10T11:00:00Z")
        assert updated == [series]
        assert "not found" in caplog.text

    def test_deleted_occurrence_is_no_longer_expanded(self, entry_factory):
        series = entry_factory(
            dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY"
        )
        updated = delete_calendar_event([series], "entry-0", "2020-01-10T10:00:00Z")
        events = calculate_calendar_events(updated, "2020-01-09T00:00:00Z", "2020-01-11T23:59:59Z")
        assert [event.start_time for event in events] == [
            "2020-01-09T10:00:00Z",
            "2020-01-11T10:00:00Z",
        ]


class TestExtractCalendarChange:
    """Tests for extract_calendar_change."""

    @pytest.fixture
    def series(self, entry_factory):
        return entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule="FREQ=DAILY")

    @pytest.mark.parametrize("rule", [None, "FREQ=DAILY"])
    def test_unchanged_calendar(self, entry_factory, other_entry, rule):
        entry = entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule=rule)
        assert extract_calendar_change([entry, other_entry], [other_entry, entry]) == []

    @pytest.mark.parametrize("rule", [None, "FREQ=DAILY"])
    def test_update_time(self, entry_factory, other_entry, rule):
        calendar = [
            entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule=rule),
            other_entry,
        ]
        new_calendar = [
            other_entry,
            entry_factory(dtstart="20200111T100000", dtend="20200111T110000", rrule=rule),
        ]

        changes = extract_calendar_change(calendar, new_calendar)

        assert changes == [
            UpdateSingleOrRecurringTimeChange(
                uid="entry-0",
                old_dtstart=DateTimeEntry(tzid="UTC", value="20200109T100000"),
                old_dtend=DateTimeEntry(tzid="UTC", value="20200109T110000"),
                new_dtstart=DateTimeEntry(tzid="UTC", value="20200111T100000"),
                new_dtend=DateTimeEntry(tzid="UTC", value="20200111T110000"),
            )
        ]
        assert changes[0].change_type == CalendarChangeType.UPDATE_SINGLE_OR_RECURRING_TIME

    def test_update_series_with_overrides_reports_only_the_time(self, entry_factory, other_entry):
        calendar = [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=["20200110T100000"],
            ),
            entry_factory(
                dtstart="20200111T120000",
                dtend="20200111T130000",
                recurrence_id="20200111T100000",
            ),
            other_entry,
        ]
        new_calendar = [
            other_entry,
            entry_factory(dtstart="20200111T100000", dtend="20200111T110000", rrule="FREQ=DAILY"),
        ]

        changes = extract_calendar_change(calendar, new_calendar)

        assert [change.change_type for change in changes] == [
            CalendarChangeType.UPDATE_SINGLE_OR_RECURRING_TIME
        ]

    @pytest.mark.parametrize(
        ("old_rule", "new_rule"),
        [(None, "FREQ=DAILY"), ("FREQ=DAILY", "FREQ=DAILY;COUNT=2"), ("FREQ=DAILY", None)],
    )
    def test_update_rule(self, entry_factory, other_entry, old_rule, new_rule):
        calendar = [
            entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule=old_rule),
            other_entry,
        ]
        new_calendar = [
            other_entry,
            entry_factory(dtstart="20200109T100000", dtend="20200109T110000", rrule=new_rule),
        ]

        assert extract_calendar_change(calendar, new_calendar) == [
            UpdateSingleOrRecurringRruleChange(uid="entry-0", old_rrule=old_rule, new_rrule=new_rule)
        ]

    def test_add_override(self, entry_factory, other_entry, series):
        override = entry_factory(
            dtstart="20200111T120000", dtend="20200111T130000", recurrence_id="20200111T100000"
        )

        changes = extract_calendar_change([series, other_entry], [series, other_entry, override])

        assert changes == [
            AddOverrideChange(
                value=override,
                old_dtstart=DateTimeEntry(tzid="UTC", value="20200111T100000"),
                old_dtend=DateTimeEntry(tzid="UTC", value="20200111T110000"),
            )
        ]

    def test_add_override_across_dst(self, entry_factory):
        series = entry_factory(
            dtstart="20220325T100000",
            dtend="20220325T110000",
            tzid="Europe/Berlin",
            rrule="FREQ=DAILY",
        )
        override = entry_factory(
            dtstart="20220327T120000",
            dtend="20220327T130000",
            tzid="Europe/Berlin",
            recurrence_id="20220327T100000",
        )

        changes = extract_calendar_change([series], [series, override])

        assert changes[0].old_dtend == DateTimeEntry(tzid="Europe/Berlin", value="20220327T110000")

    def test_override_without_series_is_not_reported(self, entry_factory):
        override = entry_factory(
            dtstart="20200111T120000", dtend="20200111T130000", recurrence_id="20200111T100000"
        )
        assert extract_calendar_change([], [override]) == []

    def test_update_override(self, entry_factory, other_entry, series):
        old_override = entry_factory(
            dtstart="20200111T103000", dtend="20200111T113000", recurrence_id="20200111T100000"
        )
        kept_override = entry_factory(
            dtstart="20200115T103000", dtend="20200115T113000", recurrence_id="20200115T100000"
        )
        new_override = entry_factory(
            dtstart="20200111T120000", dtend="20200111T130000", recurrence_id="20200111T100000"
        )

        changes = extract_calendar_change(
            [series, old_override, kept_override, other_entry],
            [series, kept_override, other_entry, new_override],
        )

        assert changes == [UpdateOverrideChange(value=new_override, old_value=old_override)]

    @pytest.mark.parametrize(
        ("old_exdate", "new_exdate"),
        [(None, ["20200215T100000"]), (["20200110T100000"], ["20200110T100000", "20200215T100000"])],
    )
    def test_add_exdate(self, entry_factory, old_exdate, new_exdate):
        other_series = entry_factory(
            uid="entry-1", dtstart="20200109T150000", dtend="20200109T160000", rrule="FREQ=DAILY"
        )
        calendar = [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=old_exdate,
            ),
            other_series,
        ]
        new_calendar = [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=new_exdate,
            ),
            other_series,
        ]

        assert extract_calendar_change(calendar, new_calendar) == [
            AddExdateChange(
                dtstart=DateTimeEntry(tzid="UTC", value="20200215T100000"),
                dtend=DateTimeEntry(tzid="UTC", value="20200215T110000"),
            )
        ]

    @pytest.mark.parametrize("override_first", [False, True])
    def test_delete_override(self, entry_factory, series, override_first):
        deleted = entry_factory(
            dtstart="20200110T103000", dtend="20200110T113000", recurrence_id="20200110T100000"
        )
        kept = entry_factory(
            dtstart="20200115T103000", dtend="20200115T113000", recurrence_id="20200115T100000"
        )
        calendar = [deleted, series, kept] if override_first else [series, deleted, kept]
        new_calendar = [
            entry_factory(
                dtstart="20200109T100000",
                dtend="20200109T110000",
                rrule="FREQ=DAILY",
                exdate=["20200110T100000"],
            ),
            kept,
        ]

        assert extract_calendar_change(calendar, new_calendar) == [
            DeleteOverrideChange(value=deleted)
        ]

    def test_delete_calendar_event_is_reported(self, entry_factory, series):
        override = entry_factory(
            dtstart="20200110T103000", dtend="20200110T113000", recurrence_id="20200110T100000"
        )
        calendar = [series, override]

        updated = delete_calendar_event(calendar, "entry-0", "2020-01-10T10:00:00Z")

        assert extract_calendar_change(calendar, updated) == [DeleteOverrideChange(value=override)]
