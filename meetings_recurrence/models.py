"""Data models for calendar entries and their occurrences."""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DateTimeEntry(BaseModel):
    """A wall-clock date-time in a named zone.

    Corresponds to an iCalendar DATE-TIME with a TZID parameter.
    """

    tzid: str = Field(..., description="IANA timezone, e.g. Europe/Berlin")
    value: str = Field(
        ...,
        pattern=r"^\d{8}T\d{6}$",
        description="Timezone-less iCalendar date-time, e.g. 20220101T100000",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("tzid")
    @classmethod
    def validate_tzid(cls, tzid: str) -> str:
        """Reject zones that ``zoneinfo`` cannot resolve."""
        try:
            ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {tzid!r}") from e
        return tzid


class CalendarEntry(BaseModel):
    """One entry of the calendar of a meeting room.

    An entry without ``rrule`` and ``recurrence_id`` is a single meeting. An
    entry with ``rrule`` is a series whose first occurrence is
    ``dtstart``..``dtend``. An entry with ``recurrence_id`` overrides the
    occurrence of the series with the same ``uid`` at that instant.
    """

    uid: str = Field(..., description="Series identity, stable across edits")
    dtstart: DateTimeEntry = Field(..., description="Inclusive start of the first occurrence")
    dtend: DateTimeEntry = Field(..., description="Exclusive end of the first occurrence")
    rrule: Optional[str] = Field(default=None, description="Recurrence rule without RRULE: prefix")
    exdate: Optional[list[DateTimeEntry]] = Field(
        default=None, description="Occurrences excluded from the series"
    )
    recurrence_id: Optional[DateTimeEntry] = Field(
        default=None,
        alias="recurrenceId",
        description="Generated start of the occurrence this entry overrides",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict:
        """Return the entry as stored in room state."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Occurrence(BaseModel):
    """A concrete occurrence of a single meeting or a series.

    Times are UTC ISO strings. ``entries`` holds the entries that produced the
    occurrence: the single or series entry first, followed by the override
    entry if the occurrence deviates from its series.
    """

    uid: str
    start_time: str = Field(..., alias="startTime", description="Inclusive start")
    end_time: str = Field(..., alias="endTime", description="Exclusive end")
    entries: list[CalendarEntry] = Field(..., min_length=1)
    recurrence_id: Optional[str] = Field(
        default=None,
        alias="recurrenceId",
        description="Generated start of this occurrence; only set for series",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def start(self) -> datetime:
        return date_parser.isoparse(self.start_time)

    @property
    def end(self) -> datetime:
        return date_parser.isoparse(self.end_time)

    @property
    def is_override(self) -> bool:
        """Check if an override entry replaced the generated timing."""
        return len(self.entries) > 1
