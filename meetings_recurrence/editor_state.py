"""State of the recurrence editor.

The editor state is an immutable snapshot that is replaced on every user
action through :func:`reducer`. It converts in both directions between the
form shown to the user and a recurrence rule string:

- :func:`store_initializer` builds the state from a stored rule and the start
  of the first meeting.
- :func:`to_rule` derives the rule from the state and reports whether every
  field the rule depends on is valid.

Numeric fields keep exactly what the user typed so the form can show the
input together with an error; only the derived rule becomes invalid.
"""

import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .exceptions import UnrepresentableRuleError
from .rrule_codec import WEEKDAYS, Frequency, RuleOptions, parse_rrule, stringify_rrule
from .rule_defaults import get_default_custom_rule_properties, get_default_recurring_meeting_end
from .rule_helpers import NumericField, normalize_byweekday, normalize_numeric

logger = logging.getLogger(__name__)


class RecurrencePreset(str, Enum):
    """Recurrence choices offered to the user."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONDAY_TO_FRIDAY = "mondayToFriday"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class CustomRuleMode(str, Enum):
    """Sub-rule used by custom monthly and yearly rules."""

    # A weekday in a given week, like the third Monday (of November)
    BY_WEEKDAY = "byWeekday"
    # A fixed day, like the 5th (of November)
    BY_MONTHDAY = "byMonthday"


class RecurrenceEnd(str, Enum):
    """How a series ends."""

    NEVER = "never"
    UNTIL_DATE = "untilDate"
    AFTER_MEETING_COUNT = "afterMeetingCount"


# Frequencies the custom rule form can produce
EDITOR_FREQUENCIES: tuple[Frequency, ...] = (
    Frequency.DAILY,
    Frequency.WEEKLY,
    Frequency.MONTHLY,
    Frequency.YEARLY,
)

# Ordinals offered for the ByWeekday mode, -1 is "last"
EDITOR_ORDINALS: tuple[int, ...] = (1, 2, 3, 4, -1)

_MONDAY_TO_FRIDAY = tuple(WEEKDAYS[:5])

# Canonical rule shape of every preset that maps to a fixed rule
_PRESET_RULE_OPTIONS: dict[RecurrencePreset, RuleOptions] = {
    RecurrencePreset.DAILY: RuleOptions(freq=Frequency.DAILY),
    RecurrencePreset.WEEKLY: RuleOptions(freq=Frequency.WEEKLY),
    RecurrencePreset.MONDAY_TO_FRIDAY: RuleOptions(
        freq=Frequency.WEEKLY, byweekday=_MONDAY_TO_FRIDAY
    ),
    RecurrencePreset.MONTHLY: RuleOptions(freq=Frequency.MONTHLY),
    RecurrencePreset.YEARLY: RuleOptions(freq=Frequency.YEARLY),
}


def _interval_field(raw: str) -> NumericField:
    return NumericField.parse(raw, minimum=1)


def _monthday_field(raw: str) -> NumericField:
    return NumericField.parse(raw, minimum=1, maximum=31)


def _count_field(raw: str) -> NumericField:
    return NumericField.parse(raw, minimum=1)


@dataclass(frozen=True)
class EditorState:
    """Complete, renderable snapshot of the recurrence editor.

    Weekdays are numbered 0=Monday..6=Sunday and months 1..12.
    """

    is_dirty: bool
    # The start of the first meeting
    start_date: datetime
    recurrence_preset: RecurrencePreset
    custom_frequency: Frequency
    custom_interval: NumericField
    custom_by_weekday: tuple[int, ...]
    custom_rule_mode: CustomRuleMode
    # BYMONTH of yearly rules
    custom_month: int
    # BYMONTHDAY in ByMonthday mode
    custom_nth_monthday: NumericField
    # BYDAY in ByWeekday mode
    custom_weekday: int
    # BYSETPOS in ByWeekday mode
    custom_nth: int
    recurrence_end: RecurrenceEnd
    # None when the user entered something that is not a date
    until_date: Optional[datetime]
    after_meeting_count: NumericField


@dataclass(frozen=True)
class UpdateStartDate:
    start_date: datetime
    is_meeting_creation: bool


@dataclass(frozen=True)
class UpdateRecurrencePreset:
    recurrence_preset: RecurrencePreset


@dataclass(frozen=True)
class UpdateCustomFrequency:
    custom_frequency: Frequency


@dataclass(frozen=True)
class UpdateCustomInterval:
    custom_interval: str


@dataclass(frozen=True)
class UpdateCustomByWeekday:
    custom_by_weekday: Sequence[int]


@dataclass(frozen=True)
class UpdateCustomRuleMode:
    custom_rule_mode: CustomRuleMode


@dataclass(frozen=True)
class UpdateCustomMonth:
    custom_month: int


@dataclass(frozen=True)
class UpdateCustomNthMonthday:
    custom_nth_monthday: str


@dataclass(frozen=True)
class UpdateCustomWeekday:
    custom_weekday: int


@dataclass(frozen=True)
class UpdateCustomNth:
    custom_nth: int


@dataclass(frozen=True)
class UpdateRecurrenceEnd:
    recurrence_end: RecurrenceEnd


@dataclass(frozen=True)
class UpdateAfterMeetingCount:
    after_meeting_count: str


@dataclass(frozen=True)
class UpdateUntilDate:
    until_date: Optional[datetime]


Action = Union[
    UpdateStartDate,
    UpdateRecurrencePreset,
    UpdateCustomFrequency,
    UpdateCustomInterval,
    UpdateCustomByWeekday,
    UpdateCustomRuleMode,
    UpdateCustomMonth,
    UpdateCustomNthMonthday,
    UpdateCustomWeekday,
    UpdateCustomNth,
    UpdateRecurrenceEnd,
    UpdateAfterMeetingCount,
    UpdateUntilDate,
]


@dataclass(frozen=True)
class RuleOptionsResult:
    rule_options: Optional[RuleOptions]
    is_valid: bool


@dataclass(frozen=True)
class RuleResult:
    """The rule derived from an editor state.

    ``rrule`` is None for meetings that do not repeat. When ``is_valid`` is
    False, ``rrule`` holds the valid portion of the rule for previews only.
    """

    rrule: Optional[str]
    is_valid: bool


def to_recurrence_preset(rule_options: Optional[RuleOptions]) -> RecurrencePreset:
    """Classify rule options as one of the presets.

    COUNT and UNTIL are ignored; anything that is not exactly the shape of a
    preset is ``CUSTOM``.
    """
    if rule_options is None:
        return RecurrencePreset.ONCE

    simple_rule_options = rule_options.without_bounds()
    for preset, canonical in _PRESET_RULE_OPTIONS.items():
        if simple_rule_options == canonical:
            return preset
    return RecurrencePreset.CUSTOM


def to_recurrence_end(rule_options: RuleOptions) -> RecurrenceEnd:
    if rule_options.count is not None:
        return RecurrenceEnd.AFTER_MEETING_COUNT
    if rule_options.until is not None:
        return RecurrenceEnd.UNTIL_DATE
    return RecurrenceEnd.NEVER


def _default_custom_nth(rule_options: Optional[RuleOptions], default: int) -> int:
    if rule_options is None:
        return default
    bysetpos = normalize_numeric(rule_options.bysetpos)
    if bysetpos is not None:
        return bysetpos
    # Rules written by other tools often carry the ordinal on the weekday
    if rule_options.byweekday and rule_options.byweekday[0].n in EDITOR_ORDINALS:
        return rule_options.byweekday[0].n
    return default


def _localize_until(until: datetime, start_date: datetime) -> datetime:
    if until.tzinfo is None and start_date.tzinfo is not None:
        return until.replace(tzinfo=start_date.tzinfo)
    return until


def store_initializer(initial_rule: Optional[str], initial_start_date: datetime) -> EditorState:
    """Create the editor state for a stored rule.

    Args:
        initial_rule: The stored rule, or None for a meeting that does not repeat
        initial_start_date: The start of the first meeting

    Returns:
        A state with ``is_dirty`` False

    Raises:
        RRuleParseError: If ``initial_rule`` is malformed
        RRuleStructureError: If ``initial_rule`` includes DTSTART
    """
    rule_options = parse_rrule(initial_rule) if initial_rule else None
    start_date = initial_start_date
    recurrence_preset = to_recurrence_preset(rule_options)
    logger.debug("Initializing recurrence editor: rule=%r preset=%s", initial_rule, recurrence_preset.value)

    defaults = get_default_custom_rule_properties(start_date)
    end_defaults = get_default_recurring_meeting_end(
        rule_options.freq if rule_options else None, start_date
    )

    by_weekday = normalize_byweekday(rule_options.byweekday) if rule_options else None
    bymonthday = normalize_numeric(rule_options.bymonthday) if rule_options else None
    bymonth = normalize_numeric(rule_options.bymonth) if rule_options else None
    weekday = normalize_numeric(by_weekday)

    if rule_options and rule_options.interval is not None:
        custom_interval = str(rule_options.interval)
    else:
        custom_interval = "1"

    if rule_options and rule_options.count is not None:
        after_meeting_count = str(rule_options.count)
    else:
        after_meeting_count = str(end_defaults.after_meeting_count)

    if rule_options and rule_options.until is not None:
        until_date = _localize_until(rule_options.until, start_date)
    else:
        until_date = end_defaults.until_date

    return EditorState(
        is_dirty=False,
        start_date=start_date,
        recurrence_preset=recurrence_preset,
        custom_frequency=rule_options.freq if rule_options else Frequency.DAILY,
        custom_interval=_interval_field(custom_interval),
        custom_by_weekday=tuple(by_weekday or [defaults.custom_weekday]),
        custom_rule_mode=(
            CustomRuleMode.BY_WEEKDAY if bymonthday is None else CustomRuleMode.BY_MONTHDAY
        ),
        custom_month=bymonth if bymonth is not None else defaults.custom_month,
        custom_nth_monthday=_monthday_field(
            str(bymonthday if bymonthday is not None else defaults.custom_nth_monthday)
        ),
        custom_weekday=weekday if weekday is not None else defaults.custom_weekday,
        custom_nth=_default_custom_nth(rule_options, defaults.custom_nth),
        recurrence_end=to_recurrence_end(rule_options) if rule_options else RecurrenceEnd.NEVER,
        until_date=until_date,
        after_meeting_count=_count_field(after_meeting_count),
    )


def _reset_anchor_fields(state: EditorState, start_date: datetime) -> EditorState:
    rule_options = to_rule_options(state).rule_options
    end_defaults = get_default_recurring_meeting_end(
        rule_options.freq if rule_options else None, start_date
    )
    defaults = get_default_custom_rule_properties(start_date)

    return dataclasses.replace(
        state,
        is_dirty=True,
        start_date=start_date,
        after_meeting_count=_count_field(str(end_defaults.after_meeting_count)),
        until_date=end_defaults.until_date,
        custom_by_weekday=(defaults.custom_weekday,),
        custom_month=defaults.custom_month,
        custom_nth=defaults.custom_nth,
        custom_nth_monthday=_monthday_field(str(defaults.custom_nth_monthday)),
        custom_weekday=defaults.custom_weekday,
    )


def _apply_recurrence_preset(state: EditorState, preset: RecurrencePreset) -> EditorState:
    rule_options = to_rule_options(
        dataclasses.replace(state, recurrence_preset=preset)
    ).rule_options
    end_defaults = get_default_recurring_meeting_end(
        rule_options.freq if rule_options else None, state.start_date
    )
    defaults = get_default_custom_rule_properties(state.start_date)
    by_weekday = normalize_byweekday(rule_options.byweekday) if rule_options else None

    return dataclasses.replace(
        state,
        is_dirty=True,
        recurrence_preset=preset,
        after_meeting_count=_count_field(str(end_defaults.after_meeting_count)),
        until_date=end_defaults.until_date,
        custom_frequency=rule_options.freq if rule_options else Frequency.DAILY,
        custom_interval=_interval_field("1"),
        custom_by_weekday=tuple(by_weekday or [defaults.custom_weekday]),
        custom_rule_mode=CustomRuleMode.BY_WEEKDAY,
        custom_month=defaults.custom_month,
        custom_nth=defaults.custom_nth,
        custom_nth_monthday=_monthday_field(str(defaults.custom_nth_monthday)),
        custom_weekday=defaults.custom_weekday,
    )


def _apply_custom_frequency(state: EditorState, frequency: Frequency) -> EditorState:
    if frequency not in EDITOR_FREQUENCIES:
        raise UnrepresentableRuleError(
            f"The recurrence editor does not support {Frequency(frequency).name} rules"
        )
    defaults = get_default_custom_rule_properties(state.start_date)

    return dataclasses.replace(
        state,
        is_dirty=True,
        custom_frequency=frequency,
        custom_by_weekday=(defaults.custom_weekday,),
        custom_rule_mode=CustomRuleMode.BY_WEEKDAY,
        custom_month=defaults.custom_month,
        custom_nth=defaults.custom_nth,
        custom_nth_monthday=_monthday_field(str(defaults.custom_nth_monthday)),
        custom_weekday=defaults.custom_weekday,
    )


def reducer(state: EditorState, action: Action) -> EditorState:
    """Return the state that results from applying ``action`` to ``state``.

    Every action marks the state dirty, except a start date update that does
    not move the start.

    Raises:
        UnrepresentableRuleError: If a custom frequency outside
            :data:`EDITOR_FREQUENCIES` is selected
    """
    if isinstance(action, UpdateStartDate):
        if action.start_date == state.start_date:
            return state
        if not action.is_meeting_creation:
            # Editing an existing series keeps the rule the user configured
            return dataclasses.replace(state, is_dirty=True, start_date=action.start_date)
        return _reset_anchor_fields(state, action.start_date)

    if isinstance(action, UpdateRecurrencePreset):
        return _apply_recurrence_preset(state, action.recurrence_preset)

    if isinstance(action, UpdateCustomFrequency):
        return _apply_custom_frequency(state, action.custom_frequency)

    if isinstance(action, UpdateCustomInterval):
        return dataclasses.replace(
            state, is_dirty=True, custom_interval=_interval_field(action.custom_interval)
        )

    if isinstance(action, UpdateCustomByWeekday):
        return dataclasses.replace(
            state, is_dirty=True, custom_by_weekday=tuple(action.custom_by_weekday)
        )

    if isinstance(action, UpdateCustomRuleMode):
        return dataclasses.replace(state, is_dirty=True, custom_rule_mode=action.custom_rule_mode)

    if isinstance(action, UpdateCustomMonth):
        return dataclasses.replace(state, is_dirty=True, custom_month=action.custom_month)

    if isinstance(action, UpdateCustomNthMonthday):
        return dataclasses.replace(
            state,
            is_dirty=True,
            custom_nth_monthday=_monthday_field(action.custom_nth_monthday),
        )

    if isinstance(action, UpdateCustomWeekday):
        return dataclasses.replace(state, is_dirty=True, custom_weekday=action.custom_weekday)

    if isinstance(action, UpdateCustomNth):
        return dataclasses.replace(state, is_dirty=True, custom_nth=action.custom_nth)

    if isinstance(action, UpdateRecurrenceEnd):
        return dataclasses.replace(state, is_dirty=True, recurrence_end=action.recurrence_end)

    if isinstance(action, UpdateAfterMeetingCount):
        return dataclasses.replace(
            state,
            is_dirty=True,
            after_meeting_count=_count_field(action.after_meeting_count),
        )

    if isinstance(action, UpdateUntilDate):
        return dataclasses.replace(state, is_dirty=True, until_date=action.until_date)

    logger.warning("Ignoring unknown recurrence editor action: %r", action)
    return state


def _custom_rule_fields(state: EditorState) -> tuple[dict[str, object], bool]:
    fields: dict[str, object] = {"freq": state.custom_frequency}
    is_valid = True

    if state.custom_interval.valid:
        fields["interval"] = state.custom_interval.parsed
    else:
        is_valid = False

    if state.custom_frequency == Frequency.WEEKLY and state.custom_by_weekday:
        # An empty selection repeats on the weekday of the start date
        fields["byweekday"] = tuple(WEEKDAYS[day] for day in state.custom_by_weekday)

    if state.custom_frequency in (Frequency.MONTHLY, Frequency.YEARLY):
        if state.custom_rule_mode == CustomRuleMode.BY_MONTHDAY:
            if state.custom_nth_monthday.valid:
                fields["bymonthday"] = (state.custom_nth_monthday.parsed,)
            else:
                is_valid = False
        else:
            fields["bysetpos"] = (state.custom_nth,)
            fields["byweekday"] = (WEEKDAYS[state.custom_weekday],)

        if state.custom_frequency == Frequency.YEARLY:
            fields["bymonth"] = (state.custom_month,)

    return fields, is_valid


def to_rule_options(state: EditorState) -> RuleOptionsResult:
    """Derive rule options from the editor state.

    Raises:
        UnrepresentableRuleError: If the preset is not one the editor knows
    """
    preset = state.recurrence_preset

    if preset == RecurrencePreset.ONCE:
        # Not recurring, the end condition does not matter
        return RuleOptionsResult(rule_options=None, is_valid=True)

    if preset in _PRESET_RULE_OPTIONS:
        rule_options = _PRESET_RULE_OPTIONS[preset]
        is_valid = True
    elif preset == RecurrencePreset.CUSTOM:
        fields, is_valid = _custom_rule_fields(state)
        rule_options = RuleOptions(**fields)  # type: ignore[arg-type]
    else:
        raise UnrepresentableRuleError(f"Unknown recurrence preset: {preset!r}")

    if state.recurrence_end == RecurrenceEnd.AFTER_MEETING_COUNT:
        if state.after_meeting_count.valid:
            rule_options = dataclasses.replace(rule_options, count=state.after_meeting_count.parsed)
        else:
            is_valid = False
    elif state.recurrence_end == RecurrenceEnd.UNTIL_DATE:
        if state.until_date is not None:
            rule_options = dataclasses.replace(rule_options, until=state.until_date)
        else:
            is_valid = False

    return RuleOptionsResult(rule_options=rule_options, is_valid=is_valid)


def to_rule(state: EditorState) -> RuleResult:
    """Derive the rule string from the editor state."""
    result = to_rule_options(state)
    rrule = stringify_rrule(result.rule_options) if result.rule_options else None
    return RuleResult(rrule=rrule, is_valid=result.is_valid)


class RecurrenceEditor:
    """Holds the state of one editing session.

    Example:
        >>> editor = RecurrenceEditor("FREQ=WEEKLY", datetime(2022, 12, 24, 10))
        >>> editor.dispatch(UpdateRecurrencePreset(RecurrencePreset.DAILY))
        >>> editor.rrule
        'FREQ=DAILY'
    """

    def __init__(self, initial_rule: Optional[str], initial_start_date: datetime):
        self.state = store_initializer(initial_rule, initial_start_date)

    def dispatch(self, action: Action) -> None:
        logger.debug("Recurrence editor action: %s", type(action).__name__)
        self.state = reducer(self.state, action)

    @property
    def rrule(self) -> Optional[str]:
        return to_rule(self.state).rrule

    @property
    def is_valid(self) -> bool:
        return to_rule(self.state).is_valid
