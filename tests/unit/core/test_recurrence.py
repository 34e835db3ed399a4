"""Tests for ban recurrence expansion."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from releasegate.core.schedule.recurrence import (
    expand_occurrences,
    nth_weekday_of_month,
    occurrence_days,
    occurrences_overlapping,
)
from releasegate.core.schedule.types import (
    RecurrenceType,
    RecurrenceWeekOfMonth,
    RecurrenceWeekday,
    weekday_of,
)
from releasegate.core.schedule.window import TimeWindow


@dataclass
class Ban:
    start_at: datetime
    end_at: datetime
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_weekday: Optional[RecurrenceWeekday] = None
    recurrence_week_of_month: Optional[RecurrenceWeekOfMonth] = None
    recurrence_end_date: Optional[date] = None


class TestNthWeekday:

    def test_first_monday(self):
        # 2024-07-01 is a Monday
        assert nth_weekday_of_month(date(2024, 7, 15), RecurrenceWeekOfMonth.FIRST, RecurrenceWeekday.MON) == date(2024, 7, 1)

    def test_third_friday(self):
        assert nth_weekday_of_month(date(2024, 6, 1), RecurrenceWeekOfMonth.THIRD, RecurrenceWeekday.FRI) == date(2024, 6, 21)

    def test_missing_fifth_occurrence(self):
        # June 2024 has four Mondays
        assert nth_weekday_of_month(date(2024, 6, 1), RecurrenceWeekOfMonth.FIFTH, RecurrenceWeekday.MON) is None

    def test_weekday_of(self):
        assert weekday_of(date(2024, 6, 1)) == RecurrenceWeekday.SAT


class TestOccurrenceDays:

    def test_daily(self):
        days = occurrence_days(RecurrenceType.DAILY, date(2024, 6, 1), date(2024, 6, 3))
        assert days == [date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3)]

    def test_weekly(self):
        days = occurrence_days(RecurrenceType.WEEKLY, date(2024, 6, 1), date(2024, 6, 30), RecurrenceWeekday.WED)
        assert days == [date(2024, 6, 5), date(2024, 6, 12), date(2024, 6, 19), date(2024, 6, 26)]

    def test_monthly_skips_months_without_fifth(self):
        days = occurrence_days(
            RecurrenceType.MONTHLY,
            date(2024, 6, 1),
            date(2024, 9, 30),
            RecurrenceWeekday.MON,
            RecurrenceWeekOfMonth.FIFTH,
        )
        # July and September 2024 have a fifth Monday; June and August do not
        assert days == [date(2024, 7, 29), date(2024, 9, 30)]

    def test_weekly_without_weekday(self):
        assert occurrence_days(RecurrenceType.WEEKLY, date(2024, 6, 1), date(2024, 6, 30)) == []


class TestExpandOccurrences:

    def test_one_off_ban_in_range(self):
        ban = Ban(datetime(2024, 6, 1, 22), datetime(2024, 6, 2, 2))
        assert expand_occurrences(ban, date(2024, 6, 2), date(2024, 6, 2)) == [
            TimeWindow(datetime(2024, 6, 1, 22), datetime(2024, 6, 2, 2))
        ]

    def test_one_off_ban_out_of_range(self):
        ban = Ban(datetime(2024, 6, 1, 22), datetime(2024, 6, 2, 2))
        assert expand_occurrences(ban, date(2024, 6, 3), date(2024, 6, 10)) == []

    def test_daily_keeps_duration(self):
        ban = Ban(datetime(2024, 6, 1, 23), datetime(2024, 6, 2, 1), RecurrenceType.DAILY)
        occurrences = expand_occurrences(ban, date(2024, 6, 10), date(2024, 6, 11))
        assert occurrences == [
            TimeWindow(datetime(2024, 6, 10, 23), datetime(2024, 6, 11, 1)),
            TimeWindow(datetime(2024, 6, 11, 23), datetime(2024, 6, 12, 1)),
        ]

    def test_recurrence_end_date(self):
        ban = Ban(
            datetime(2024, 6, 1, 2), datetime(2024, 6, 1, 3),
            RecurrenceType.DAILY,
            recurrence_end_date=date(2024, 6, 3),
        )
        occurrences = expand_occurrences(ban, date(2024, 6, 1), date(2024, 6, 30))
        assert [o.start.date() for o in occurrences] == [date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3)]

    def test_not_before_start_date(self):
        ban = Ban(datetime(2024, 6, 10, 2), datetime(2024, 6, 10, 3), RecurrenceType.DAILY)
        occurrences = expand_occurrences(ban, date(2024, 6, 1), date(2024, 6, 11))
        assert [o.start.date() for o in occurrences] == [date(2024, 6, 10), date(2024, 6, 11)]

    def test_overlapping_occurrence_from_previous_day(self):
        ban = Ban(datetime(2024, 6, 1, 23), datetime(2024, 6, 2, 1), RecurrenceType.DAILY)
        window = TimeWindow(datetime(2024, 6, 5, 0, 30), datetime(2024, 6, 5, 0, 45))
        assert occurrences_overlapping(ban, window) == [
            TimeWindow(datetime(2024, 6, 4, 23), datetime(2024, 6, 5, 1))
        ]

    def test_weekly_ban_blocks_matching_day_only(self):
        # Every Wednesday 02:00-04:00
        ban = Ban(
            datetime(2024, 6, 5, 2), datetime(2024, 6, 5, 4),
            RecurrenceType.WEEKLY,
            RecurrenceWeekday.WED,
        )
        wednesday = TimeWindow(datetime(2024, 6, 12, 3), datetime(2024, 6, 12, 5))
        thursday = TimeWindow(datetime(2024, 6, 13, 3), datetime(2024, 6, 13, 5))
        assert len(occurrences_overlapping(ban, wednesday)) == 1
        assert occurrences_overlapping(ban, thursday) == []
