"""Ban period registry.

Stores maintenance windows during which deployments to specific
projects are refused, expands recurring bans into occurrences and
answers "is project P blocked during [a, b)?".
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional

from releasegate.core.approval.states import ACTIVE_SCHEDULE_STATES
from releasegate.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    WorkflowError,
)

from .recurrence import expand_occurrences, occurrences_overlapping
from .types import (
    BAN_TYPE_LABELS,
    BanType,
    RECURRENCE_TYPE_LABELS,
    RecurrenceType,
    RecurrenceWeekOfMonth,
    RecurrenceWeekday,
)
from .window import TimeWindow

logger = logging.getLogger(__name__)


def _as_enum(enum_cls, value, key: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationError(
            f"Invalid {key}: {value}",
            details={"code": "INVALID_BAN", "field": key},
        )


def _as_date(value, key: str) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {key}: {value}",
            details={"code": "INVALID_BAN", "field": key},
        )


def _as_time(value, key: str) -> Optional[time]:
    if value is None or isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {key}: {value}",
            details={"code": "INVALID_BAN", "field": key},
        )


@dataclass
class BanCreateRequest:
    """A ban period to be created."""

    title: str
    ban_type: BanType
    start_date: date
    start_time: time
    end_date: date
    end_time: time
    related_project_ids: List[int] = field(default_factory=list)
    description: Optional[str] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_weekday: Optional[RecurrenceWeekday] = None
    recurrence_week_of_month: Optional[RecurrenceWeekOfMonth] = None
    recurrence_end_date: Optional[date] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BanCreateRequest":
        """Build a request from ISO date/time strings and enum names."""
        return cls(
            title=data.get("title", ""),
            ban_type=_as_enum(BanType, data.get("type") or data.get("ban_type"), "type"),
            start_date=_as_date(data.get("start_date"), "start_date"),
            start_time=_as_time(data.get("start_time"), "start_time"),
            end_date=_as_date(data.get("end_date"), "end_date"),
            end_time=_as_time(data.get("end_time"), "end_time"),
            related_project_ids=list(data.get("related_project_ids") or []),
            description=data.get("description"),
            recurrence_type=_as_enum(RecurrenceType, data.get("recurrence_type"), "recurrence_type"),
            recurrence_weekday=_as_enum(RecurrenceWeekday, data.get("recurrence_weekday"), "recurrence_weekday"),
            recurrence_week_of_month=_as_enum(
                RecurrenceWeekOfMonth, data.get("recurrence_week_of_month"), "recurrence_week_of_month"
            ),
            recurrence_end_date=_as_date(data.get("recurrence_end_date"), "recurrence_end_date"),
        )

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start_date, self.start_time)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.end_date, self.end_time)


@dataclass
class BanOccurrence:
    """One concrete interval of a ban period."""

    ban_id: int
    title: str
    ban_type: BanType
    window: TimeWindow
    project_ids: List[int]
    description: Optional[str] = None
    recurrence_type: Optional[RecurrenceType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ban_id": self.ban_id,
            "title": self.title,
            "description": self.description,
            "type": self.ban_type.value,
            "type_label": BAN_TYPE_LABELS[self.ban_type],
            "recurrence_type": self.recurrence_type.value if self.recurrence_type else None,
            "recurrence_label": RECURRENCE_TYPE_LABELS.get(self.recurrence_type),
            "project_ids": self.project_ids,
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
        }


def validate_ban_request(request: BanCreateRequest, known_project_ids: Iterable[int]) -> None:
    """
    Check a ban request before it is stored.

    Args:
        request: Requested ban period
        known_project_ids: IDs of the requested projects that exist

    Raises:
        ValidationError: With a ``code`` detail naming the failed rule
    """
    if not request.title or not request.title.strip():
        raise ValidationError("Ban title is required", details={"code": "INVALID_BAN", "field": "title"})

    if request.ban_type is None:
        raise ValidationError("Ban type is required", details={"code": "INVALID_BAN", "field": "type"})

    if None in (request.start_date, request.start_time, request.end_date, request.end_time):
        raise ValidationError(
            "Ban start and end are required",
            details={"code": "INVALID_TIME_RANGE"},
        )

    if request.end_at <= request.start_at:
        raise ValidationError(
            "Ban end must be after its start",
            details={
                "code": "INVALID_TIME_RANGE",
                "start": request.start_at.isoformat(),
                "end": request.end_at.isoformat(),
            },
        )

    project_ids = request.related_project_ids
    if not project_ids:
        raise ValidationError("At least one project is required", details={"code": "EMPTY_PROJECTS"})

    if len(set(project_ids)) != len(project_ids):
        raise ValidationError(
            "Project list contains duplicates",
            details={"code": "DUPLICATE_PROJECTS", "project_ids": list(project_ids)},
        )

    unknown = sorted(set(project_ids) - set(known_project_ids))
    if unknown:
        raise ValidationError(
            f"Unknown projects: {unknown}",
            details={"code": "UNKNOWN_PROJECTS", "project_ids": unknown},
        )

    _validate_recurrence(request)


def _validate_recurrence(request: BanCreateRequest) -> None:
    if request.recurrence_type is None:
        if request.recurrence_weekday or request.recurrence_week_of_month or request.recurrence_end_date:
            raise ValidationError(
                "Recurrence options given without a recurrence type",
                details={"code": "INVALID_RECURRENCE"},
            )
        return

    if request.recurrence_type in (RecurrenceType.WEEKLY, RecurrenceType.MONTHLY) and request.recurrence_weekday is None:
        raise ValidationError(
            f"{request.recurrence_type.value} recurrence needs a weekday",
            details={"code": "INVALID_RECURRENCE", "field": "recurrence_weekday"},
        )

    if request.recurrence_type == RecurrenceType.MONTHLY and request.recurrence_week_of_month is None:
        raise ValidationError(
            "MONTHLY recurrence needs a week of month",
            details={"code": "INVALID_RECURRENCE", "field": "recurrence_week_of_month"},
        )

    if request.recurrence_end_date is not None and request.recurrence_end_date < request.start_date:
        raise ValidationError(
            "Recurrence end date precedes the ban start date",
            details={"code": "INVALID_RECURRENCE", "field": "recurrence_end_date"},
        )


def ban_to_dict(ban) -> Dict[str, Any]:
    """Serialize a stored ban period."""
    return {
        "id": ban.id,
        "title": ban.title,
        "description": ban.description,
        "type": ban.ban_type.value,
        "type_label": BAN_TYPE_LABELS[ban.ban_type],
        "start": ban.start_at.isoformat(),
        "end": ban.end_at.isoformat(),
        "project_ids": ban.project_ids,
        "created_by": ban.created_by,
        "recurrence_type": ban.recurrence_type.value if ban.recurrence_type else None,
        "recurrence_weekday": ban.recurrence_weekday.value if ban.recurrence_weekday else None,
        "recurrence_week_of_month": ban.recurrence_week_of_month.value if ban.recurrence_week_of_month else None,
        "recurrence_end_date": ban.recurrence_end_date.isoformat() if ban.recurrence_end_date else None,
        "deleted_at": ban.deleted_at.isoformat() if ban.deleted_at else None,
    }


class BanRegistry:
    """
    Registry of ban periods.

    Handles:
    - Creating and soft-deleting bans (scheduler roles only)
    - Finding ban occurrences that block a window
    - Listing ban occurrences in a date range
    - Advisory checks of a proposed ban against scheduled deployments
    """

    def __init__(self, store, config):
        """
        Initialize the registry.

        Args:
            store: WorkflowStore
            config: WorkflowConfig
        """
        self.store = store
        self.config = config

    def create(self, request: BanCreateRequest, *, account_id: int) -> Dict[str, Any]:
        """
        Create a ban period.

        Returns:
            Dictionary with the stored ban

        Raises:
            NotFoundError: If the account does not exist
            PermissionDeniedError: If the account is not a scheduler
            ValidationError: If the request is malformed
        """
        from releasegate.db.models.ban import BanPeriod

        try:
            self._ensure_scheduler(account_id)
            validate_ban_request(request, self.store.projects_exist(request.related_project_ids))

            ban = BanPeriod(
                title=request.title.strip(),
                description=request.description,
                ban_type=request.ban_type,
                created_by=account_id,
                start_date=request.start_date,
                start_time=request.start_time,
                end_date=request.end_date,
                end_time=request.end_time,
                recurrence_type=request.recurrence_type,
                recurrence_weekday=request.recurrence_weekday,
                recurrence_week_of_month=request.recurrence_week_of_month,
                recurrence_end_date=request.recurrence_end_date,
            )
            ban.project_ids = request.related_project_ids
            self.store.save_ban(ban)
            self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Ban create refused for account %s: %s", account_id, e.message)
            raise

        logger.info("Ban %s created by account %s for projects %s", ban.id, account_id, ban.project_ids)
        return ban_to_dict(ban)

    def cancel(self, ban_id: int, *, account_id: int) -> Dict[str, Any]:
        """
        Soft-delete a ban period.

        Raises:
            NotFoundError: If the ban does not exist or is already deleted
            PermissionDeniedError: If the account is not a scheduler
        """
        try:
            self._ensure_scheduler(account_id)
            ban = self.store.load_ban(ban_id)
            if ban is None:
                raise NotFoundError("Ban", ban_id)

            ban.soft_delete()
            self.store.save_ban(ban)
            self.store.commit()
        except WorkflowError as e:
            self.store.rollback()
            logger.warning("Ban cancel refused for ban %s: %s", ban_id, e.message)
            raise

        logger.info("Ban %s canceled by account %s", ban_id, account_id)
        return ban_to_dict(ban)

    def list_active(self, project_ids: Iterable[int], window: TimeWindow) -> List[BanOccurrence]:
        """
        Ban occurrences on ``project_ids`` that overlap ``window``.

        Deleted bans are never returned. Recurring bans yield one entry per
        overlapping occurrence.
        """
        ids = sorted(set(project_ids))
        if not ids:
            return []

        candidates = self.store.list_active_bans(
            ids,
            (window.start - timedelta(days=1)).date(),
            window.end.date(),
        )
        occurrences = []
        for ban in candidates:
            for occurrence in occurrences_overlapping(ban, window):
                occurrences.append(self._occurrence(ban, occurrence))

        occurrences.sort(key=lambda o: (o.window.start, o.ban_id))
        return occurrences

    def list_schedules(
        self,
        query: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        ban_type: Optional[BanType] = None,
        project_ids: Optional[Iterable[int]] = None,
    ) -> List[Dict[str, Any]]:
        """
        List ban occurrences in a date range, for calendars and search.

        Args:
            query: Case-insensitive substring of title or description
            start_date: First day, defaults to today
            end_date: Last day, defaults to the configured listing range
            ban_type: Only bans of this type
            project_ids: Only bans touching one of these projects

        Returns:
            Occurrence dictionaries in chronological order

        Raises:
            ValidationError: If the range is inverted or too long to expand
        """
        start_date, end_date = self.listing_range(start_date, end_date)

        bans = self.store.search_bans(
            query=query,
            ban_type=ban_type,
            project_ids=project_ids,
            start_date=start_date,
            end_date=end_date,
        )

        occurrences = []
        for ban in bans:
            for occurrence in expand_occurrences(ban, start_date, end_date):
                occurrences.append(self._occurrence(ban, occurrence))

        occurrences.sort(key=lambda o: (o.window.start, o.ban_id))
        return [occurrence.to_dict() for occurrence in occurrences]

    def find_conflicting_windows(
        self,
        request: BanCreateRequest,
        query_start: Optional[date] = None,
        query_end: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """
        Scheduled deployments a proposed ban would overlap.

        Advisory only: nothing is stored and nothing is canceled.

        Returns:
            One dictionary per (ban occurrence, scheduled window) pair
        """
        validate_ban_request(request, self.store.projects_exist(request.related_project_ids))

        if query_start is None:
            query_start = request.start_date
        if query_end is None:
            if request.recurrence_type is None:
                query_end = request.end_date
            elif request.recurrence_end_date is not None:
                query_end = request.recurrence_end_date
            else:
                query_end = query_start + timedelta(days=self.config.recurrence_horizon_days)
        query_start, query_end = self.listing_range(query_start, query_end)

        conflicts = []
        for occurrence in expand_occurrences(request, query_start, query_end):
            scheduled = self.store.list_overlapping_windows(
                request.related_project_ids,
                occurrence,
                statuses=ACTIVE_SCHEDULE_STATES,
                types=self.config.scheduled_types,
            )
            for item in scheduled:
                entry = item.to_dict()
                entry["occurrence"] = occurrence.to_dict()
                conflicts.append(entry)
        return conflicts

    def _ensure_scheduler(self, account_id: int) -> None:
        account = self.store.get_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        if not self.config.is_scheduler(account.role):
            raise PermissionDeniedError(
                f"Account {account_id} may not edit ban periods",
                details={"account_id": account_id, "role": account.role.value},
            )

    def listing_range(self, start_date: Optional[date], end_date: Optional[date]):
        """Default and bound a calendar date range."""
        if start_date is None:
            start_date = date.today()
        if end_date is None:
            end_date = start_date + timedelta(days=self.config.ban_listing_days)

        if end_date < start_date:
            raise ValidationError(
                "End date must not precede start date",
                details={"code": "INVALID_TIME_RANGE"},
            )
        if (end_date - start_date).days > self.config.recurrence_horizon_days:
            raise ValidationError(
                f"Date range exceeds {self.config.recurrence_horizon_days} days",
                details={"code": "RANGE_TOO_LARGE"},
            )
        return start_date, end_date

    @staticmethod
    def _occurrence(ban, window: TimeWindow) -> BanOccurrence:
        return BanOccurrence(
            ban_id=ban.id,
            title=ban.title,
            ban_type=ban.ban_type,
            window=window,
            project_ids=ban.project_ids,
            description=ban.description,
            recurrence_type=ban.recurrence_type,
        )
