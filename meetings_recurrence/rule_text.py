"""Human readable descriptions of recurrence rules.

Produces the English preview shown next to the recurrence editor, for example
``Every 2 months on the last Monday until December 31, 2023``.
"""

import logging
from datetime import UTC, datetime, tzinfo
from typing import Optional

from .rrule_codec import Frequency, RuleOptions, parse_rrule
from .rule_helpers import is_weekdays, normalize_byweekday, normalize_numeric, ordered_weekdays

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_ORDINAL_LABELS = {1: "first", 2: "second", 3: "third", 4: "fourth"}

UNSUPPORTED_RECURRENCE = "Unsupported recurrence"


def get_ordinal_label(ordinal: int) -> str:
    """Return the label of a BYSETPOS value; anything but 1..4 reads as "last"."""
    return _ORDINAL_LABELS.get(ordinal, "last")


def format_ordinal_number(number: int) -> str:
    """Format a day of the month as ``1st``, ``2nd``, ``11th``, ``23rd`` etc."""
    if 11 <= abs(number) % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(abs(number) % 10, "th")
    return f"{number}{suffix}"


def format_list(items: list[str]) -> str:
    """Join items as an English conjunction: ``A``, ``A and B``, ``A, B, and C``."""
    if len(items) <= 1:
        return "".join(items)
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def format_date(value: datetime) -> str:
    return f"{MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


def _format_recurrence_end(options: RuleOptions, tz: tzinfo) -> str:
    if options.until is not None:
        until = options.until
        if until.tzinfo is not None:
            until = until.astimezone(tz)
        return f" until {format_date(until)}"
    if options.count is not None:
        if options.count == 1:
            return " for one time"
        return f" for {options.count} times"
    return ""


def _plural(interval: int, one: str, other: str) -> str:
    return one if interval == 1 else other.format(count=interval)


def format_rule_text(rule: str, tz: Optional[tzinfo] = None, week_start: int = 0) -> str:
    """Describe a recurrence rule in English.

    Only the parts the recurrence editor produces are described; other parts
    of externally authored rules are ignored.

    Args:
        rule: Recurrence rule string, with or without the ``RRULE:`` prefix
        tz: Zone the UNTIL date is shown in, UTC by default
        week_start: First day of the week, 0=Monday..6=Sunday. Weekdays of
            weekly rules are listed from this day on

    Returns:
        The description, or ``Unsupported recurrence`` for hourly and finer
        frequencies

    Raises:
        RRuleParseError: If the rule is malformed
        RRuleStructureError: If the rule includes DTSTART
        ValueError: If ``week_start`` is not a weekday index
    """
    day_order = ordered_weekdays(week_start)
    options = parse_rrule(rule)
    interval = options.interval or 1
    end = _format_recurrence_end(options, tz or UTC)

    if options.freq == Frequency.DAILY:
        return _plural(interval, "Every day", "Every {count} days") + end

    byweekday = normalize_byweekday(options.byweekday)

    if options.freq == Frequency.WEEKLY:
        if is_weekdays(byweekday):
            text = _plural(interval, "Every weekday", "Every {count} weeks on weekdays")
        elif byweekday:
            weekdays = format_list([WEEKDAY_NAMES[day] for day in day_order if day in byweekday])
            text = _plural(interval, "Every week", "Every {count} weeks") + f" on {weekdays}"
        else:
            text = _plural(interval, "Every week", "Every {count} weeks")
        return text + end

    bymonthday = normalize_numeric(options.bymonthday)
    weekday = normalize_numeric(byweekday)
    bysetpos = normalize_numeric(options.bysetpos)
    ordinal_label = get_ordinal_label(bysetpos if bysetpos is not None else 1)

    if options.freq == Frequency.MONTHLY:
        prefix = _plural(interval, "Every month", "Every {count} months")
        if bymonthday is not None:
            text = f"{prefix} on the {format_ordinal_number(bymonthday)}"
        elif weekday is not None:
            text = f"{prefix} on the {ordinal_label} {WEEKDAY_NAMES[weekday]}"
        else:
            text = prefix
        return text + end

    if options.freq == Frequency.YEARLY:
        bymonth = normalize_numeric(options.bymonth) or 1
        month_label = MONTH_NAMES[bymonth - 1]
        if bymonthday is not None:
            day = format_ordinal_number(bymonthday)
            if interval == 1:
                text = f"Every {month_label} on the {day}"
            else:
                text = f"Every {interval} years on the {day} of {month_label}"
        elif weekday is not None:
            day = f"{ordinal_label} {WEEKDAY_NAMES[weekday]}"
            if interval == 1:
                text = f"Every {month_label} on the {day}"
            else:
                text = f"Every {interval} years on the {day} of {month_label}"
        else:
            text = _plural(interval, "Every year", "Every {count} years")
        return text + end

    logger.debug("No description for %s rule %r", Frequency(options.freq).name, rule)
    return UNSUPPORTED_RECURRENCE
