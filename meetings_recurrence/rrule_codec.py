"""Recurrence rule codec.

Converts between value-only RRULE strings (``FREQ=MONTHLY;BYSETPOS=-1;BYDAY=MO``)
and :class:`RuleOptions`, and builds ``dateutil`` rules from options for
expansion. The string form never carries a start date; the start date of a
series lives on its calendar entry.
"""

import dataclasses
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, time
from enum import IntEnum
from typing import Optional

from dateutil import rrule as _rrule
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, weekday

from .datetime_utils import ensure_timezone_aware
from .exceptions import RRuleParseError, RRuleStructureError

logger = logging.getLogger(__name__)


class Frequency(IntEnum):
    """RRULE frequencies, valued like the ``dateutil.rrule`` constants."""

    YEARLY = _rrule.YEARLY
    MONTHLY = _rrule.MONTHLY
    WEEKLY = _rrule.WEEKLY
    DAILY = _rrule.DAILY
    HOURLY = _rrule.HOURLY
    MINUTELY = _rrule.MINUTELY
    SECONDLY = _rrule.SECONDLY


# Indexed by weekday number, 0=Monday..6=Sunday
WEEKDAYS: tuple[weekday, ...] = (MO, TU, WE, TH, FR, SA, SU)
WEEKDAY_CODES: tuple[str, ...] = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

_WEEKDAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")
_UNTIL_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?$")


@dataclass(frozen=True)
class RuleOptions:
    """Parsed parts of a recurrence rule.

    Absent list parts are empty tuples, absent scalar parts are ``None``, so
    two options compare equal exactly when they describe the same rule text.
    ``until`` is timezone-aware for UTC values and naive for floating ones.
    """

    freq: Frequency
    interval: Optional[int] = None
    count: Optional[int] = None
    until: Optional[datetime] = None
    bysetpos: tuple[int, ...] = ()
    byweekday: tuple[weekday, ...] = ()
    bymonth: tuple[int, ...] = ()
    bymonthday: tuple[int, ...] = ()
    byyearday: tuple[int, ...] = ()
    byweekno: tuple[int, ...] = ()
    byhour: tuple[int, ...] = ()
    byminute: tuple[int, ...] = ()
    bysecond: tuple[int, ...] = ()
    wkst: Optional[int] = None
    # Never part of the string form, see stringify_rrule
    dtstart: Optional[datetime] = None

    def without_bounds(self) -> "RuleOptions":
        """Return a copy without ``count``, ``until`` and ``dtstart``."""
        return dataclasses.replace(self, count=None, until=None, dtstart=None)


def is_finite_series(options: RuleOptions) -> bool:
    """Return whether the rule ends on its own (COUNT or UNTIL)."""
    return options.count is not None or options.until is not None


def format_weekday(day: weekday) -> str:
    """Format a weekday as a BYDAY token, e.g. ``MO``, ``+2TU`` or ``-1FR``."""
    code = WEEKDAY_CODES[day.weekday]
    if not day.n:
        return code
    sign = "+" if day.n > 0 else ""
    return f"{sign}{day.n}{code}"


def parse_weekday(token: str) -> weekday:
    """Parse a BYDAY token such as ``MO`` or ``-1FR``.

    Raises:
        RRuleParseError: If the token is not a weekday
    """
    match = _WEEKDAY_PATTERN.match(token.strip().upper())
    if not match:
        raise RRuleParseError(f"Invalid weekday: {token!r}")
    ordinal, code = match.groups()
    day = WEEKDAYS[WEEKDAY_CODES.index(code)]
    if ordinal is None:
        return day
    n = int(ordinal)
    if n == 0 or abs(n) > 53:
        raise RRuleParseError(f"Invalid weekday ordinal: {token!r}")
    return day(n)


def format_until(until: datetime) -> str:
    """Format an UNTIL value in UTC basic format; naive values are read as UTC."""
    return ensure_timezone_aware(until).astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def parse_until(value: str) -> datetime:
    """Parse an UNTIL value.

    ``...Z`` values become aware UTC datetimes, floating values stay naive.
    A bare date covers that whole day and becomes its last second.

    Raises:
        RRuleParseError: If the value is not an iCalendar date or date-time
    """
    match = _UNTIL_PATTERN.match(value.strip())
    if not match:
        raise RRuleParseError(f"Invalid UNTIL value: {value!r}")
    year, month, day, hour, minute, second, utc_marker = match.groups()
    try:
        if hour is None:
            return datetime.combine(
                datetime(int(year), int(month), int(day)).date(), time(23, 59, 59)
            )
        parsed = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second)
        )
    except ValueError as e:
        raise RRuleParseError(f"Invalid UNTIL value: {value!r}") from e
    return parsed.replace(tzinfo=UTC) if utc_marker else parsed


def _parse_int(name: str, value: str, minimum: int, maximum: int, allow_zero: bool = True) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise RRuleParseError(f"{name} must be an integer, got {value!r}") from e
    if number < minimum or number > maximum or (number == 0 and not allow_zero):
        raise RRuleParseError(f"{name} out of range: {number}")
    return number


def _parse_int_list(
    name: str, value: str, minimum: int, maximum: int, allow_zero: bool = True
) -> tuple[int, ...]:
    return tuple(
        _parse_int(name, item, minimum, maximum, allow_zero)
        for item in value.split(",")
    )


# part name -> (field, minimum, maximum, zero allowed)
_LIST_PARTS = {
    "BYSETPOS": ("bysetpos", -366, 366, False),
    "BYMONTH": ("bymonth", 1, 12, True),
    "BYMONTHDAY": ("bymonthday", -31, 31, False),
    "BYYEARDAY": ("byyearday", -366, 366, False),
    "BYWEEKNO": ("byweekno", -53, 53, False),
    "BYHOUR": ("byhour", 0, 23, True),
    "BYMINUTE": ("byminute", 0, 59, True),
    "BYSECOND": ("bysecond", 0, 60, True),
}


def _extract_rule_body(text: str) -> str:
    body: Optional[str] = None
    for raw_line in text.strip().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith("DTSTART"):
            raise RRuleStructureError("rule should not include DTSTART or similar")
        if upper.startswith("RRULE:"):
            line = line[len("RRULE:"):]
        elif ":" in line:
            raise RRuleParseError(f"Unsupported rule line: {line!r}")
        if body is not None:
            raise RRuleParseError("Only a single RRULE is supported")
        body = line
    if not body:
        raise RRuleParseError("Empty RRULE string")
    return body


def parse_rrule(text: str) -> RuleOptions:
    """Parse a recurrence rule string into options.

    The ``RRULE:`` prefix is optional.

    Args:
        text: Rule such as ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE``

    Returns:
        The parsed options

    Raises:
        RRuleStructureError: If the rule includes DTSTART
        RRuleParseError: If the rule is malformed
    """
    if text is None or not text.strip():
        raise RRuleParseError("Empty RRULE string")

    body = _extract_rule_body(text)
    values: dict[str, object] = {}
    seen: set[str] = set()

    for part in body.split(";"):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key = key.strip().upper()
        value = value.strip()
        if not sep or not value:
            raise RRuleParseError(f"Invalid RRULE part: {part!r}")
        if key in seen:
            raise RRuleParseError(f"Duplicate RRULE part: {key}")
        seen.add(key)

        if key == "DTSTART":
            raise RRuleStructureError("rule should not include DTSTART or similar")
        if key == "FREQ":
            try:
                values["freq"] = Frequency[value.upper()]
            except KeyError as e:
                raise RRuleParseError(f"Unknown FREQ: {value!r}") from e
        elif key == "INTERVAL":
            values["interval"] = _parse_int(key, value, 1, 2**31 - 1)
        elif key == "COUNT":
            values["count"] = _parse_int(key, value, 1, 2**31 - 1)
        elif key == "UNTIL":
            values["until"] = parse_until(value)
        elif key == "BYDAY":
            values["byweekday"] = tuple(parse_weekday(token) for token in value.split(","))
        elif key == "WKST":
            day = parse_weekday(value)
            if day.n:
                raise RRuleParseError(f"Invalid WKST: {value!r}")
            values["wkst"] = day.weekday
        elif key in _LIST_PARTS:
            field, minimum, maximum, allow_zero = _LIST_PARTS[key]
            values[field] = _parse_int_list(key, value, minimum, maximum, allow_zero)
        else:
            raise RRuleParseError(f"Unknown RRULE property: {key}")

    if "freq" not in values:
        raise RRuleParseError("RRULE missing required FREQ parameter")

    return RuleOptions(**values)  # type: ignore[arg-type]


def _join(numbers: tuple[int, ...]) -> str:
    return ",".join(str(n) for n in numbers)


def stringify_rrule(options: RuleOptions) -> str:
    """Serialize options into a value-only rule string.

    Parts are emitted in the order FREQ, INTERVAL, COUNT, UNTIL, BYSETPOS,
    BYDAY, BYMONTH, BYMONTHDAY, followed by BYYEARDAY, BYWEEKNO, BYHOUR,
    BYMINUTE, BYSECOND and WKST.

    Raises:
        RRuleStructureError: If the options carry a ``dtstart``
    """
    if options.dtstart is not None:
        raise RRuleStructureError("ruleOptions should not include DTSTART or similar")

    parts = [f"FREQ={Frequency(options.freq).name}"]
    if options.interval is not None:
        parts.append(f"INTERVAL={options.interval}")
    if options.count is not None:
        parts.append(f"COUNT={options.count}")
    if options.until is not None:
        parts.append(f"UNTIL={format_until(options.until)}")
    if options.bysetpos:
        parts.append(f"BYSETPOS={_join(options.bysetpos)}")
    if options.byweekday:
        parts.append("BYDAY=" + ",".join(format_weekday(d) for d in options.byweekday))
    if options.bymonth:
        parts.append(f"BYMONTH={_join(options.bymonth)}")
    if options.bymonthday:
        parts.append(f"BYMONTHDAY={_join(options.bymonthday)}")
    if options.byyearday:
        parts.append(f"BYYEARDAY={_join(options.byyearday)}")
    if options.byweekno:
        parts.append(f"BYWEEKNO={_join(options.byweekno)}")
    if options.byhour:
        parts.append(f"BYHOUR={_join(options.byhour)}")
    if options.byminute:
        parts.append(f"BYMINUTE={_join(options.byminute)}")
    if options.bysecond:
        parts.append(f"BYSECOND={_join(options.bysecond)}")
    if options.wkst is not None:
        parts.append(f"WKST={WEEKDAY_CODES[options.wkst]}")

    return ";".join(parts)


def to_dateutil_rrule(options: RuleOptions, dtstart: datetime) -> _rrule.rrule:
    """Build a ``dateutil`` rule that expands ``options`` from ``dtstart``.

    Occurrences keep the wall-clock time of ``dtstart`` in its zone. A floating
    UNTIL is read in that same zone.
    """
    until = options.until
    if until is not None:
        if until.tzinfo is None and dtstart.tzinfo is not None:
            until = until.replace(tzinfo=dtstart.tzinfo)
        elif until.tzinfo is not None and dtstart.tzinfo is None:
            until = until.astimezone(UTC).replace(tzinfo=None)

    kwargs: dict[str, object] = {
        "dtstart": dtstart,
        "interval": options.interval or 1,
    }
    if options.count is not None:
        kwargs["count"] = options.count
    if until is not None:
        kwargs["until"] = until
    if options.wkst is not None:
        kwargs["wkst"] = options.wkst
    if options.byweekday:
        kwargs["byweekday"] = options.byweekday
    for field in ("bysetpos", "bymonth", "bymonthday", "byyearday", "byweekno",
                  "byhour", "byminute", "bysecond"):
        value = getattr(options, field)
        if value:
            kwargs[field] = value

    logger.debug("Building dateutil rrule: freq=%s %r", Frequency(options.freq).name, kwargs)
    return _rrule.rrule(int(options.freq), **kwargs)  # type: ignore[arg-type]
