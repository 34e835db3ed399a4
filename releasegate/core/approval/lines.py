"""Approval line evaluation.

Validates the ordered approval line of a document and derives the
document outcome from the individual line decisions. Everything here is
a pure read over line objects exposing ``line_type``, ``account_id`` and
``decision``; nothing is persisted.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from releasegate.core.errors import OutOfOrderError, ValidationError

from .states import DocumentStatus, EVALUATED_LINE_TYPES, LineType


@dataclass
class LineSpec:
    """A requested approval line, before it is attached to a document."""

    account_id: int
    line_type: LineType = LineType.APPROVE
    comment: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "LineSpec":
        try:
            line_type = LineType(data.get("type", LineType.APPROVE.value))
        except ValueError:
            raise ValidationError(
                f"Unknown line type: {data.get('type')}",
                details={"code": "INVALID_LINES"},
            )
        return cls(
            account_id=data["account_id"],
            line_type=line_type,
            comment=data.get("comment"),
        )


class ApprovalLineEvaluator:
    """
    Validates and evaluates an ordered approval line.

    Order rules:
    - APPROVE lines act strictly in stored order
    - CONSENT lines act in any order
    - CC lines never block and never decide the outcome
    - the DRAFT line is the drafter's own acknowledgment
    """

    def validate(self, lines: Sequence, drafter_id: Optional[int] = None) -> None:
        """
        Check an approval line before it is stored.

        Args:
            lines: Lines in authority order
            drafter_id: Drafter account, required to check the DRAFT line

        Raises:
            ValidationError: If the line is empty, has no APPROVE line,
                repeats a (type, account) pair or misuses the DRAFT role
        """
        if not lines:
            raise ValidationError(
                "Approval line must not be empty",
                details={"code": "INVALID_LINES"},
            )

        if not any(line.line_type == LineType.APPROVE for line in lines):
            raise ValidationError(
                "Approval line needs at least one APPROVE line",
                details={"code": "INVALID_LINES"},
            )

        seen = set()
        for index, line in enumerate(lines):
            key = (line.line_type, line.account_id)
            if key in seen:
                raise ValidationError(
                    f"Account {line.account_id} holds two {line.line_type.value} lines",
                    details={"code": "INVALID_LINES", "position": index},
                )
            seen.add(key)

        draft_lines = [line for line in lines if line.line_type == LineType.DRAFT]
        if len(draft_lines) > 1:
            raise ValidationError(
                "At most one DRAFT line is allowed",
                details={"code": "INVALID_LINES"},
            )
        if draft_lines and drafter_id is not None and draft_lines[0].account_id != drafter_id:
            raise ValidationError(
                "The DRAFT line must name the drafter",
                details={
                    "code": "INVALID_LINES",
                    "account_id": draft_lines[0].account_id,
                    "drafter_id": drafter_id,
                },
            )

    def derive_status(self, lines: Iterable) -> DocumentStatus:
        """
        Derive the outcome implied by the recorded decisions.

        Safe to call at any time; a rejection wins over undecided lines.
        """
        decisions = [line.decision for line in lines if line.line_type in EVALUATED_LINE_TYPES]
        if any(decision is False for decision in decisions):
            return DocumentStatus.REJECTED
        if any(decision is None for decision in decisions):
            return DocumentStatus.PENDING
        return DocumentStatus.APPROVED

    def ensure_can_act(self, lines: Sequence, line) -> None:
        """
        Raise if ``line`` may not record a decision yet.

        An APPROVE line acts only once every earlier APPROVE line approved.
        """
        if line.line_type != LineType.APPROVE:
            return

        for earlier in lines:
            if earlier is line:
                return
            if earlier.line_type == LineType.APPROVE and earlier.decision is not True:
                raise OutOfOrderError(
                    f"Account {line.account_id} must wait for account {earlier.account_id}",
                    details={
                        "account_id": line.account_id,
                        "waiting_for": earlier.account_id,
                    },
                )

    def actionable_lines(self, lines: Sequence) -> List:
        """Undecided APPROVE/CONSENT lines that may act right now."""
        actionable = []
        approve_blocked = False
        for line in lines:
            if line.line_type == LineType.APPROVE:
                if line.decision is None and not approve_blocked:
                    actionable.append(line)
                if line.decision is not True:
                    approve_blocked = True
            elif line.line_type == LineType.CONSENT and line.decision is None:
                actionable.append(line)
        return actionable

    def actionable_accounts(self, lines: Sequence) -> List[int]:
        """Accounts that may record a decision right now, in stored order."""
        accounts = []
        for line in self.actionable_lines(lines):
            if line.account_id not in accounts:
                accounts.append(line.account_id)
        return accounts

    def next_approver(self, lines: Sequence) -> Optional[int]:
        """Account ID of the first line that may act, in stored order."""
        actionable = self.actionable_lines(lines)
        return actionable[0].account_id if actionable else None

    def draft_line(self, lines: Sequence):
        """The drafter's acknowledgment line, if the document has one."""
        for line in lines:
            if line.line_type == LineType.DRAFT:
                return line
        return None
