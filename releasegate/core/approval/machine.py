"""Approval document state machine.

Moves one document through DRAFT, REQUESTED, PENDING and its terminal
states, checks drafter-only moves, keeps the transitions it performed for
the audit trail and runs side-effect callbacks.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from releasegate.core.errors import PermissionDeniedError, TransitionError

from .states import (
    DocumentStatus,
    DocumentTransition,
    TERMINAL_STATES,
    TransitionRule,
    can_transition,
    get_transition_rule,
)

logger = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any]], None]


class ApprovalStateMachine:
    """
    State machine for a single approval document.

    The machine is built per operation from the stored status; the caller
    copies ``state`` back to the document and persists ``get_history()``
    as ApprovalHistory rows.
    """

    def __init__(
        self,
        document_id: Optional[int],
        current_state: DocumentStatus,
        drafter_id: int,
    ):
        """
        Args:
            document_id: Approval document ID, None before the first flush
            current_state: Stored document status
            drafter_id: Account that drafted the document
        """
        self.document_id = document_id
        self.drafter_id = drafter_id
        self._state = current_state
        self._performed: List[Dict[str, Any]] = []
        self._callbacks: Dict[DocumentTransition, List[Callback]] = {}

    @property
    def state(self) -> DocumentStatus:
        return self._state

    @property
    def is_terminal(self) -> bool:
        """APPROVED, REJECTED and CANCELED accept no further transitions."""
        return self._state in TERMINAL_STATES

    def can_perform(self, transition: DocumentTransition, actor_id: Optional[int] = None) -> bool:
        rule = get_transition_rule(self._state, transition)
        if rule is None:
            return False
        return not rule.drafter_only or actor_id == self.drafter_id

    def get_available_transitions(self, actor_id: Optional[int] = None) -> List[DocumentTransition]:
        """Transitions ``actor_id`` may perform from the current status."""
        return [t for t in DocumentTransition if self.can_perform(t, actor_id)]

    def check_transition(self, transition: DocumentTransition, actor_id: Optional[int] = None) -> TransitionRule:
        """
        Raise unless ``transition`` is allowed now for ``actor_id``.

        Returns:
            The matching TransitionRule
        """
        if not can_transition(self._state, transition):
            raise TransitionError(
                f"Cannot {transition.value} a document in state {self._state.value}",
                self._state,
                transition,
            )

        rule = get_transition_rule(self._state, transition)
        if rule.drafter_only and actor_id != self.drafter_id:
            raise PermissionDeniedError(
                f"Only the drafter may {transition.value} document {self.document_id}",
                details={"actor_id": actor_id, "drafter_id": self.drafter_id},
            )
        return rule

    def transition(
        self,
        transition: DocumentTransition,
        *,
        actor_id: Optional[int] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DocumentStatus:
        """
        Move the document and record the move.

        Args:
            transition: Requested transition
            actor_id: Account performing it
            comment: Free-text comment stored with the history row
            metadata: Extra data stored with the history row

        Returns:
            Status after the move

        Raises:
            TransitionError: If the current status does not allow it
            PermissionDeniedError: If a drafter-only move comes from someone else
        """
        rule = self.check_transition(transition, actor_id)
        record = {
            "document_id": self.document_id,
            "from_state": self._state.value,
            "to_state": rule.to_state.value,
            "transition": transition.value,
            "actor_id": actor_id,
            "comment": comment,
            "metadata": metadata or {},
            "timestamp": datetime.utcnow(),
        }

        logger.info(
            "Document %s: %s -> %s (%s by account %s)",
            self.document_id, self._state.value, rule.to_state.value, transition.value, actor_id,
        )
        self._state = rule.to_state
        self._performed.append(record)

        for callback in self._callbacks.get(transition, []):
            try:
                callback(record)
            except Exception:
                # The transition stands even when a side effect fails
                logger.exception("Callback failed for %s on document %s", transition.value, self.document_id)

        return self._state

    def register_callback(self, transition: DocumentTransition, callback: Callback) -> None:
        """Run ``callback(record)`` after every ``transition``."""
        self._callbacks.setdefault(transition, []).append(callback)

    def get_history(self) -> List[Dict[str, Any]]:
        """Transitions performed by this machine, oldest first."""
        return list(self._performed)
