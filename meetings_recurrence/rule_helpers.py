"""Small helpers shared by the recurrence editor and the rule text formatter."""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from dateutil.rrule import weekday

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def locale_weekday_to_rrule(index: int) -> int:
    """Convert a Sunday-based weekday index (0=Sunday) to 0=Monday..6=Sunday."""
    return (index - 1 + 7) % 7


def ordered_weekdays(week_start: int = 0) -> list[int]:
    """Return the seven weekday indices in display order.

    Args:
        week_start: First day of the week, 0=Monday..6=Sunday

    Raises:
        ValueError: If ``week_start`` is not a weekday index
    """
    if week_start not in range(7):
        raise ValueError(f"week_start must be in 0..6, got {week_start!r}")
    return [(week_start + offset) % 7 for offset in range(7)]


def normalize_numeric(value: Optional[Sequence[int]]) -> Optional[int]:
    """Return the first value of a numeric rule part, or None if absent.

    Only the first value is kept; rules with several values for a part the
    editor models as a single choice lose the rest.
    """
    if not value:
        return None
    return value[0]


def normalize_byweekday(value: Optional[Sequence[weekday]]) -> Optional[list[int]]:
    """Return the weekday indices of a BYDAY part, dropping ordinals."""
    if not value:
        return None
    return [day.weekday for day in value]


def is_weekdays(byweekday: Optional[Sequence[int]]) -> bool:
    """Return whether the weekday set is exactly Monday to Friday."""
    if byweekday is None:
        return False
    return set(byweekday) == {0, 1, 2, 3, 4}


def parse_leading_int(raw: str) -> Optional[int]:
    """Parse the integer a free-text field starts with.

    ``"12"`` and ``"3 times"`` parse, ``""``, ``"t"`` and ``"-"`` do not.
    """
    match = _LEADING_INT.match(raw or "")
    if not match:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class NumericField:
    """A free-text numeric field as typed by the user.

    ``raw`` is always kept verbatim so it can be shown back; ``parsed`` is the
    leading integer if any, and ``valid`` tells whether it lies in bounds.
    """

    raw: str
    parsed: Optional[int]
    valid: bool

    @classmethod
    def parse(
        cls, raw: str, minimum: int = 1, maximum: Optional[int] = None
    ) -> "NumericField":
        parsed = parse_leading_int(raw)
        valid = (
            parsed is not None
            and parsed >= minimum
            and (maximum is None or parsed <= maximum)
        )
        return cls(raw=raw, parsed=parsed, valid=valid)

    def __str__(self) -> str:
        return self.raw
