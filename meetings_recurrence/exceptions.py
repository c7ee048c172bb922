"""Exception hierarchy for the recurrence engine.

Invalid user input in the recurrence editor is never raised; it is reported
through the ``is_valid`` flag of :func:`meetings_recurrence.editor_state.to_rule`.
The exceptions below cover malformed data and programming errors.
"""


class RecurrenceError(Exception):
    """Base exception for all recurrence engine errors."""


class RRuleParseError(RecurrenceError):
    """A recurrence rule string could not be parsed.

    Raised when:
    - The rule is empty or has no FREQ part
    - A part is unknown or appears twice
    - A part value is not a valid number, weekday or date
    """


class RRuleStructureError(RecurrenceError):
    """A recurrence rule carries a start date.

    Rules exchanged with the meeting transport are value-only RRULE strings.
    A DTSTART part on load, or a ``dtstart`` in options handed to the
    serializer, is a precondition violation.
    """


class UnrepresentableRuleError(RecurrenceError):
    """The editor was asked to emit a preset or frequency it does not support."""


class CalendarEntryError(RecurrenceError):
    """A calendar entry cannot be interpreted.

    Raised when:
    - A timezone identifier is unknown
    - A date-time value does not match ``YYYYMMDDTHHMMSS``
    - The recurrence rule of a series entry is malformed
    """


class CalendarQueryError(RecurrenceError):
    """The arguments of an occurrence query are inconsistent."""
