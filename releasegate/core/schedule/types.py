"""Ban period and recurrence types."""

from datetime import date
from enum import Enum
from typing import Dict


class BanType(str, Enum):
    """Reasons a maintenance window blocks deployments."""

    DB_MIGRATION = "DB_MIGRATION"
    ACCIDENT = "ACCIDENT"
    MAINTENANCE = "MAINTENANCE"
    EXTERNAL_SCHEDULE = "EXTERNAL_SCHEDULE"


class RecurrenceType(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class RecurrenceWeekday(str, Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @property
    def iso_index(self) -> int:
        """Monday-based weekday index, as ``date.weekday()`` returns it."""
        return list(RecurrenceWeekday).index(self)


class RecurrenceWeekOfMonth(str, Enum):
    FIRST = "FIRST"
    SECOND = "SECOND"
    THIRD = "THIRD"
    FOURTH = "FOURTH"
    FIFTH = "FIFTH"

    @property
    def offset(self) -> int:
        """Zero-based week offset from the first matching weekday."""
        return list(RecurrenceWeekOfMonth).index(self)


class ConflictReason(str, Enum):
    """Why a proposed window was refused."""

    BAN_OVERLAP = "BAN_OVERLAP"
    DEPLOYMENT_OVERLAP = "DEPLOYMENT_OVERLAP"


BAN_TYPE_LABELS: Dict[BanType, str] = {
    BanType.DB_MIGRATION: "Database migration",
    BanType.ACCIDENT: "Incident / disaster",
    BanType.MAINTENANCE: "Maintenance",
    BanType.EXTERNAL_SCHEDULE: "External schedule",
}

RECURRENCE_TYPE_LABELS: Dict[RecurrenceType, str] = {
    RecurrenceType.DAILY: "Every day",
    RecurrenceType.WEEKLY: "Every week",
    RecurrenceType.MONTHLY: "Every month",
}

WEEKDAY_LABELS: Dict[RecurrenceWeekday, str] = {
    RecurrenceWeekday.MON: "Monday",
    RecurrenceWeekday.TUE: "Tuesday",
    RecurrenceWeekday.WED: "Wednesday",
    RecurrenceWeekday.THU: "Thursday",
    RecurrenceWeekday.FRI: "Friday",
    RecurrenceWeekday.SAT: "Saturday",
    RecurrenceWeekday.SUN: "Sunday",
}

WEEK_OF_MONTH_LABELS: Dict[RecurrenceWeekOfMonth, str] = {
    RecurrenceWeekOfMonth.FIRST: "First week",
    RecurrenceWeekOfMonth.SECOND: "Second week",
    RecurrenceWeekOfMonth.THIRD: "Third week",
    RecurrenceWeekOfMonth.FOURTH: "Fourth week",
    RecurrenceWeekOfMonth.FIFTH: "Fifth week",
}


def weekday_of(day: date) -> RecurrenceWeekday:
    return list(RecurrenceWeekday)[day.weekday()]
