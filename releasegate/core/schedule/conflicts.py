"""Schedule conflict checking.

Decides whether a proposed deployment window is legal for a set of
projects, given the ban periods and the windows of other scheduled
deployments. The check is a pure read.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from releasegate.core.approval.states import ACTIVE_SCHEDULE_STATES
from releasegate.core.errors import ValidationError

from .types import ConflictReason
from .window import TimeWindow

logger = logging.getLogger(__name__)


@dataclass
class ConflictEntry:
    """One ban occurrence or scheduled document blocking a window."""

    window: TimeWindow
    project_ids: List[int]
    ban_id: Optional[int] = None
    document_id: Optional[int] = None
    title: str = ""
    kind: Optional[str] = None  # ban type or document type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ban_id": self.ban_id,
            "document_id": self.document_id,
            "title": self.title,
            "kind": self.kind,
            "project_ids": self.project_ids,
            "window": self.window.to_dict(),
        }


@dataclass
class Accept:
    """The window is free on every requested project."""

    accepted = True

    def to_dict(self) -> Dict[str, Any]:
        return {"accepted": True}


@dataclass
class Conflict:
    """The window is refused; ``entries`` lists what it collides with."""

    reason: ConflictReason
    entries: List[ConflictEntry] = field(default_factory=list)

    accepted = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": False,
            "reason": self.reason.value,
            "entries": [entry.to_dict() for entry in self.entries],
        }


CheckResult = Union[Accept, Conflict]


class ScheduleConflictChecker:
    """
    Checks proposed windows against bans and other deployments.

    Ban conflicts are reported before deployment conflicts.
    """

    def __init__(self, store, registry, config):
        """
        Initialize the checker.

        Args:
            store: WorkflowStore for scheduled document windows
            registry: BanRegistry for overlapping ban occurrences
            config: WorkflowConfig naming the scheduled document types
        """
        self.store = store
        self.registry = registry
        self.config = config

    def check_window(
        self,
        project_ids: Iterable[int],
        window: TimeWindow,
        exclude_document_id: Optional[int] = None,
    ) -> CheckResult:
        """
        Check a proposed window.

        Args:
            project_ids: Projects the window touches
            window: Proposed [start, end)
            exclude_document_id: Document whose own window is ignored

        Returns:
            Accept, or Conflict with BAN_OVERLAP or DEPLOYMENT_OVERLAP

        Raises:
            ValidationError: If no project is given or the window is missing
        """
        ids = sorted(set(project_ids or []))
        if not ids:
            raise ValidationError(
                "At least one project is required",
                details={"code": "EMPTY_PROJECTS"},
            )
        if window is None:
            raise ValidationError(
                "A schedule window is required",
                details={"code": "INVALID_TIME_RANGE"},
            )

        requested = set(ids)

        bans = self.registry.list_active(ids, window)
        if bans:
            logger.info(
                "Window %s - %s refused: %d ban occurrence(s)",
                window.start, window.end, len(bans),
            )
            return Conflict(
                ConflictReason.BAN_OVERLAP,
                [
                    ConflictEntry(
                        window=occurrence.window,
                        project_ids=sorted(requested.intersection(occurrence.project_ids)),
                        ban_id=occurrence.ban_id,
                        title=occurrence.title,
                        kind=occurrence.ban_type.value,
                    )
                    for occurrence in bans
                ],
            )

        scheduled = self.store.list_overlapping_windows(
            ids,
            window,
            statuses=ACTIVE_SCHEDULE_STATES,
            types=self.config.scheduled_types,
            exclude_document_id=exclude_document_id,
        )
        if scheduled:
            logger.info(
                "Window %s - %s refused: %d scheduled deployment(s)",
                window.start, window.end, len(scheduled),
            )
            return Conflict(ConflictReason.DEPLOYMENT_OVERLAP, self._group_by_document(scheduled))

        return Accept()

    @staticmethod
    def _group_by_document(scheduled) -> List[ConflictEntry]:
        entries: Dict[int, ConflictEntry] = {}
        for item in scheduled:
            entry = entries.get(item.document_id)
            if entry is None:
                entry = ConflictEntry(
                    window=item.window,
                    project_ids=[],
                    document_id=item.document_id,
                    title=item.title,
                    kind=item.document_type.value,
                )
                entries[item.document_id] = entry
            entry.project_ids.append(item.project_id)
        return list(entries.values())
