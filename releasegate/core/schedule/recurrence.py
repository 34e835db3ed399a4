"""Recurring ban expansion.

Turns a ban period, recurring or not, into the concrete occurrences that
fall inside a date range.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterator, List

from .types import RecurrenceType, RecurrenceWeekOfMonth, RecurrenceWeekday
from .window import TimeWindow


def _days(first: date, last: date) -> Iterator[date]:
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def nth_weekday_of_month(
    month: date,
    week_of_month: RecurrenceWeekOfMonth,
    weekday: RecurrenceWeekday,
):
    """
    Date of the Nth given weekday in ``month``'s month.

    Returns:
        The date, or None when the month has no such occurrence
        (e.g. no fifth Friday)
    """
    first_day = month.replace(day=1)
    shift = (weekday.iso_index - first_day.weekday()) % 7
    candidate = first_day + timedelta(days=shift + 7 * week_of_month.offset)
    if candidate.month != first_day.month:
        return None
    return candidate


def occurrence_days(
    recurrence_type: RecurrenceType,
    first: date,
    last: date,
    weekday=None,
    week_of_month=None,
) -> List[date]:
    """Days in ``[first, last]`` on which a recurring ban starts."""
    if recurrence_type == RecurrenceType.DAILY:
        return list(_days(first, last))

    if recurrence_type == RecurrenceType.WEEKLY:
        if weekday is None:
            return []
        return [d for d in _days(first, last) if d.weekday() == weekday.iso_index]

    if recurrence_type == RecurrenceType.MONTHLY:
        if weekday is None or week_of_month is None:
            return []
        days = []
        month = first.replace(day=1)
        while month <= last:
            candidate = nth_weekday_of_month(month, week_of_month, weekday)
            if candidate is not None and first <= candidate <= last:
                days.append(candidate)
            month = _first_of_next_month(month)
        return days

    return []


def expand_occurrences(ban, query_start: date, query_end: date) -> List[TimeWindow]:
    """
    Concrete intervals of ``ban`` within the inclusive date range.

    Args:
        ban: Object exposing ``start_at``, ``end_at``, ``recurrence_type``,
            ``recurrence_weekday``, ``recurrence_week_of_month`` and
            ``recurrence_end_date``
        query_start: First day of the range
        query_end: Last day of the range

    Returns:
        Occurrences in chronological order
    """
    base = TimeWindow(ban.start_at, ban.end_at)

    if ban.recurrence_type is None:
        range_window = TimeWindow(
            datetime.combine(query_start, time.min),
            datetime.combine(query_end + timedelta(days=1), time.min),
        )
        return [base] if base.overlaps(range_window) else []

    last = query_end
    if ban.recurrence_end_date is not None and ban.recurrence_end_date < last:
        last = ban.recurrence_end_date
    first = max(ban.start_at.date(), query_start)
    if first > last:
        return []

    start_time = ban.start_at.time()
    duration = base.duration
    occurrences = []
    for day in occurrence_days(
        ban.recurrence_type,
        first,
        last,
        ban.recurrence_weekday,
        ban.recurrence_week_of_month,
    ):
        start = datetime.combine(day, start_time)
        occurrences.append(TimeWindow(start, start + duration))
    return occurrences


def occurrences_overlapping(ban, window: TimeWindow) -> List[TimeWindow]:
    """Occurrences of ``ban`` that intersect ``window``."""
    # An occurrence starting before the window can still reach into it
    lookback = ban.end_at - ban.start_at
    candidates = expand_occurrences(
        ban,
        (window.start - lookback).date(),
        window.end.date(),
    )
    return [occurrence for occurrence in candidates if occurrence.overlaps(window)]
