"""meetings_recurrence - recurrence engine for meeting rooms.

Two parts share one rule codec:

- the recurrence editor state (:mod:`meetings_recurrence.editor_state`), which
  converts between the editor form and a recurrence rule string, and
- the occurrence expander (:mod:`meetings_recurrence.calendar_events`), which
  turns the calendar entries of a room into concrete occurrences.
"""

__version__ = "0.1.0"

from .calendar_edits import (
    CalendarChange,
    CalendarChangeType,
    delete_calendar_event,
    extract_calendar_change,
    override_calendar_entries,
)
from .calendar_events import calculate_calendar_events, generate_rruleset, is_recurring_meeting
from .calendar_queries import INFINITE, get_calendar_end, get_calendar_event, normalize_calendar_entry
from .editor_state import (
    CustomRuleMode,
    EditorState,
    RecurrenceEditor,
    RecurrenceEnd,
    RecurrencePreset,
    reducer,
    store_initializer,
    to_rule,
)
from .exceptions import (
    CalendarEntryError,
    CalendarQueryError,
    RecurrenceError,
    RRuleParseError,
    RRuleStructureError,
    UnrepresentableRuleError,
)
from .models import CalendarEntry, DateTimeEntry, Occurrence
from .rrule_codec import Frequency, RuleOptions, parse_rrule, stringify_rrule
from .rule_text import format_rule_text

__all__ = [
    "INFINITE",
    "CalendarChange",
    "CalendarChangeType",
    "CalendarEntry",
    "CalendarEntryError",
    "CalendarQueryError",
    "CustomRuleMode",
    "DateTimeEntry",
    "EditorState",
    "Frequency",
    "Occurrence",
    "RRuleParseError",
    "RRuleStructureError",
    "RecurrenceEditor",
    "RecurrenceEnd",
    "RecurrenceError",
    "RecurrencePreset",
    "RuleOptions",
    "UnrepresentableRuleError",
    "__version__",
    "calculate_calendar_events",
    "delete_calendar_event",
    "extract_calendar_change",
    "format_rule_text",
    "generate_rruleset",
    "get_calendar_end",
    "get_calendar_event",
    "is_recurring_meeting",
    "normalize_calendar_entry",
    "override_calendar_entries",
    "parse_rrule",
    "reducer",
    "store_initializer",
    "stringify_rrule",
    "to_rule",
]
