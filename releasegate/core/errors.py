"""Typed workflow errors.

Every failure of a workflow operation is raised as a ``WorkflowError``
subclass carrying an ``ErrorKind``. None of them is fatal to the process;
each is scoped to one operation on one document or ban.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Kinds of workflow failures."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    SCHEDULE_CONFLICT = "schedule_conflict"
    INVALID_TRANSITION = "invalid_transition"
    OUT_OF_ORDER = "out_of_order"
    STALE_STATE = "stale_state"
    PERMISSION_DENIED = "permission_denied"


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Render in the ``{error, detail, code}`` error response shape."""
        return {
            "error": self.kind.value,
            "detail": self.message,
            "code": self.details.get("code", self.kind.name),
            "details": self.details,
        }


class ValidationError(WorkflowError):
    """Malformed input: empty project list, inverted range, duplicate line."""

    kind = ErrorKind.VALIDATION


class NotFoundError(WorkflowError):
    """A document, ban, account, project or deployment id did not resolve."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ScheduleConflictError(WorkflowError):
    """The proposed window overlaps a ban or another scheduled deployment."""

    kind = ErrorKind.SCHEDULE_CONFLICT

    def __init__(self, conflict):
        super().__init__(
            f"Schedule conflict: {conflict.reason.value}",
            details=conflict.to_dict(),
        )
        self.conflict = conflict


class TransitionError(WorkflowError):
    """Raised when a state transition is invalid."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, message: str, from_state, transition):
        super().__init__(
            message,
            details={
                "current_state": getattr(from_state, "value", from_state),
                "attempted": getattr(transition, "value", transition),
            },
        )
        self.from_state = from_state
        self.transition = transition


class OutOfOrderError(WorkflowError):
    """An APPROVE line acted before an earlier APPROVE line approved."""

    kind = ErrorKind.OUT_OF_ORDER


class StaleStateError(WorkflowError):
    """A concurrent writer changed the document first; reload and retry."""

    kind = ErrorKind.STALE_STATE


class PermissionDeniedError(WorkflowError):
    """The acting account may not perform this operation."""

    kind = ErrorKind.PERMISSION_DENIED
