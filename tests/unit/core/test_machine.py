"""Tests for the approval document state machine."""

import pytest

from releasegate.core.approval.machine import ApprovalStateMachine
from releasegate.core.approval.states import DocumentStatus, DocumentTransition
from releasegate.core.errors import ErrorKind, PermissionDeniedError, TransitionError

DRAFTER = 1
OTHER = 2


def make_machine(state: DocumentStatus) -> ApprovalStateMachine:
    return ApprovalStateMachine(document_id=10, current_state=state, drafter_id=DRAFTER)


class TestApprovalStateMachine:
    """Test ApprovalStateMachine class."""

    def test_initial_state(self):
        machine = make_machine(DocumentStatus.DRAFT)
        assert machine.state == DocumentStatus.DRAFT
        assert not machine.is_terminal

    def test_available_transitions_for_drafter(self):
        machine = make_machine(DocumentStatus.DRAFT)
        available = machine.get_available_transitions(actor_id=DRAFTER)
        assert set(available) == {DocumentTransition.SUBMIT, DocumentTransition.CANCEL}

    def test_available_transitions_for_other_account(self):
        machine = make_machine(DocumentStatus.DRAFT)
        assert machine.get_available_transitions(actor_id=OTHER) == []

    def test_submit_and_acknowledge(self):
        machine = make_machine(DocumentStatus.DRAFT)
        assert machine.transition(DocumentTransition.SUBMIT, actor_id=DRAFTER) == DocumentStatus.REQUESTED
        assert machine.transition(DocumentTransition.ACKNOWLEDGE, actor_id=DRAFTER) == DocumentStatus.PENDING

    def test_invalid_transition_names_state_and_attempt(self):
        machine = make_machine(DocumentStatus.APPROVED)

        with pytest.raises(TransitionError) as exc:
            machine.transition(DocumentTransition.CANCEL, actor_id=DRAFTER)

        assert exc.value.kind == ErrorKind.INVALID_TRANSITION
        assert exc.value.details == {"current_state": "APPROVED", "attempted": "cancel"}

    def test_cancel_by_non_drafter_denied(self):
        machine = make_machine(DocumentStatus.PENDING)

        with pytest.raises(PermissionDeniedError):
            machine.transition(DocumentTransition.CANCEL, actor_id=OTHER)
        assert machine.state == DocumentStatus.PENDING

    def test_check_transition_does_not_move(self):
        machine = make_machine(DocumentStatus.DRAFT)
        rule = machine.check_transition(DocumentTransition.SUBMIT, DRAFTER)
        assert rule.to_state == DocumentStatus.REQUESTED
        assert machine.state == DocumentStatus.DRAFT

    def test_transition_history(self):
        machine = make_machine(DocumentStatus.PENDING)
        machine.transition(
            DocumentTransition.APPROVE,
            actor_id=OTHER,
            comment="ship it",
            metadata={"line_id": 3},
        )

        history = machine.get_history()
        assert len(history) == 1
        record = history[0]
        assert record["document_id"] == 10
        assert record["from_state"] == "PENDING"
        assert record["to_state"] == "APPROVED"
        assert record["transition"] == "approve"
        assert record["actor_id"] == OTHER
        assert record["comment"] == "ship it"
        assert record["metadata"] == {"line_id": 3}
        assert machine.is_terminal

    def test_callbacks_run_after_transition(self):
        machine = make_machine(DocumentStatus.PENDING)
        seen = []
        machine.register_callback(DocumentTransition.REJECT, lambda record: seen.append(record["to_state"]))

        machine.transition(DocumentTransition.REJECT, actor_id=OTHER)

        assert seen == ["REJECTED"]

    def test_failing_callback_does_not_undo_transition(self):
        machine = make_machine(DocumentStatus.PENDING)

        def boom(record):
            raise RuntimeError("deployment service down")

        machine.register_callback(DocumentTransition.APPROVE, boom)
        assert machine.transition(DocumentTransition.APPROVE, actor_id=OTHER) == DocumentStatus.APPROVED
