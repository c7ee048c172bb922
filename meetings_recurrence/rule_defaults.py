"""Anchor-relative defaults for the recurrence editor.

All defaults are derived from the wall-clock date of the anchor (the start of
the first meeting) in the anchor's own timezone.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from .rrule_codec import Frequency


@dataclass(frozen=True)
class CustomRuleDefaults:
    """Defaults for the custom rule fields of the editor."""

    custom_month: int
    custom_nth_monthday: int
    custom_weekday: int
    custom_nth: int


@dataclass(frozen=True)
class RecurringMeetingEndDefaults:
    """Defaults for the end condition fields of the editor."""

    until_date: datetime
    after_meeting_count: int


# frequency -> (distance to the default until date, default meeting count)
_END_HORIZONS: dict[Frequency, tuple[relativedelta, int]] = {
    Frequency.DAILY: (relativedelta(days=30), 30),
    Frequency.WEEKLY: (relativedelta(weeks=13), 13),
    Frequency.MONTHLY: (relativedelta(months=12), 12),
    Frequency.YEARLY: (relativedelta(years=5), 5),
}


def end_of_day(value: datetime) -> datetime:
    """Return the last instant of the day of ``value`` in its own zone."""
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def get_default_recurring_meeting_end(
    frequency: Optional[Frequency], dtstart: datetime
) -> RecurringMeetingEndDefaults:
    """Return the default end condition for a series of the given frequency.

    Daily series end after 30 meetings or 30 days, weekly after 13 meetings or
    weeks, monthly after 12 meetings or months. Yearly series, and anything
    else, end after 5 meetings or years.
    """
    delta, count = _END_HORIZONS.get(frequency, _END_HORIZONS[Frequency.YEARLY])  # type: ignore[arg-type]
    return RecurringMeetingEndDefaults(
        until_date=end_of_day(dtstart + delta),
        after_meeting_count=count,
    )


def get_weekday_ordinal(value: datetime) -> int:
    """Return which occurrence of its weekday within the month ``value`` is.

    Returns 1 to 4, or -1 for the fifth occurrence, which is always the last
    one of the month.
    """
    ordinal = (value.day - 1) // 7 + 1
    if ordinal > 4:
        return -1
    return ordinal


def get_default_custom_rule_properties(start_date: datetime) -> CustomRuleDefaults:
    """Return the custom rule defaults for an anchor date.

    Weekdays are numbered 0=Monday..6=Sunday and months 1..12.
    """
    return CustomRuleDefaults(
        custom_month=start_date.month,
        custom_nth_monthday=start_date.day,
        custom_weekday=start_date.weekday(),
        custom_nth=get_weekday_ordinal(start_date),
    )
