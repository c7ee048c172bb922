"""Tests for the recurrence engine exception hierarchy."""

import pytest

from meetings_recurrence.exceptions import (
    CalendarEntryError,
    CalendarQueryError,
    RecurrenceError,
    RRuleParseError,
    RRuleStructureError,
    UnrepresentableRuleError,
)

pytestmark = pytest.mark.unit

ALL_ERRORS = [
    RRuleParseError,
    RRuleStructureError,
    UnrepresentableRuleError,
    CalendarEntryError,
    CalendarQueryError,
]


class TestExceptionHierarchy:
    """Test the exception hierarchy is properly structured."""

    def test_all_exceptions_inherit_from_base(self):
        """All custom exceptions should inherit from RecurrenceError."""
        for exc_class in ALL_ERRORS:
            assert issubclass(exc_class, RecurrenceError)
            assert issubclass(exc_class, Exception)

    def test_exceptions_are_distinguishable(self):
        """Each exception type should be distinguishable."""
        types = [type(exc_class("message")) for exc_class in ALL_ERRORS]
        assert len(set(types)) == len(types)

    def test_exception_messages_are_preserved(self):
        msg = "Invalid rrule of entry 'entry-0'"
        assert str(CalendarEntryError(msg)) == msg

    def test_exceptions_can_be_raised_and_caught(self):
        with pytest.raises(RecurrenceError):
            raise RRuleParseError("test")

        with pytest.raises(CalendarQueryError):
            raise CalendarQueryError("test")
