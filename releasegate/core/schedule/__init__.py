"""Scheduling module for releasegate.

Half-open time windows, ban period recurrence and the types shared by the
ban registry and the schedule conflict checker.
"""

from .types import BanType, ConflictReason, RecurrenceType, RecurrenceWeekOfMonth, RecurrenceWeekday
from .window import TimeWindow, parse_window_from_content
from .recurrence import expand_occurrences

__all__ = [
    "BanType",
    "ConflictReason",
    "RecurrenceType",
    "RecurrenceWeekOfMonth",
    "RecurrenceWeekday",
    "TimeWindow",
    "expand_occurrences",
    "parse_window_from_content",
]
