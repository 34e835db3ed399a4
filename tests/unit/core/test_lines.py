"""Tests for approval line validation and evaluation."""

from dataclasses import dataclass
from typing import Optional

import pytest

from releasegate.core.approval.lines import ApprovalLineEvaluator, LineSpec
from releasegate.core.approval.states import DocumentStatus, LineType
from releasegate.core.errors import ErrorKind, OutOfOrderError, ValidationError

A, B, C, D, E = 1, 2, 3, 4, 5


@dataclass
class Line:
    account_id: int
    line_type: LineType
    decision: Optional[bool] = None


@pytest.fixture
def evaluator():
    return ApprovalLineEvaluator()


class TestLineSpec:

    def test_from_dict(self):
        spec = LineSpec.from_dict({"type": "CONSENT", "account_id": 7, "comment": "fyi"})
        assert spec == LineSpec(account_id=7, line_type=LineType.CONSENT, comment="fyi")

    def test_from_dict_defaults_to_approve(self):
        assert LineSpec.from_dict({"account_id": 7}).line_type == LineType.APPROVE

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec.from_dict({"type": "VETO", "account_id": 7})
        assert exc.value.details["code"] == "INVALID_LINES"


class TestValidate:

    def test_valid_line(self, evaluator):
        lines = [Line(A, LineType.DRAFT), Line(B, LineType.APPROVE), Line(C, LineType.CC)]
        evaluator.validate(lines, drafter_id=A)

    def test_empty_line(self, evaluator):
        with pytest.raises(ValidationError) as exc:
            evaluator.validate([])
        assert exc.value.kind == ErrorKind.VALIDATION
        assert exc.value.details["code"] == "INVALID_LINES"

    def test_needs_approve_line(self, evaluator):
        with pytest.raises(ValidationError):
            evaluator.validate([Line(A, LineType.DRAFT), Line(B, LineType.CONSENT)], drafter_id=A)

    def test_duplicate_line(self, evaluator):
        lines = [Line(B, LineType.APPROVE), Line(B, LineType.APPROVE)]
        with pytest.raises(ValidationError) as exc:
            evaluator.validate(lines)
        assert exc.value.details["position"] == 1

    def test_same_account_in_two_roles(self, evaluator):
        evaluator.validate([Line(B, LineType.APPROVE), Line(B, LineType.CC)])

    def test_two_draft_lines(self, evaluator):
        lines = [Line(A, LineType.DRAFT), Line(B, LineType.DRAFT), Line(C, LineType.APPROVE)]
        with pytest.raises(ValidationError):
            evaluator.validate(lines)

    def test_draft_line_must_name_drafter(self, evaluator):
        lines = [Line(B, LineType.DRAFT), Line(C, LineType.APPROVE)]
        with pytest.raises(ValidationError) as exc:
            evaluator.validate(lines, drafter_id=A)
        assert exc.value.details["drafter_id"] == A


class TestDeriveStatus:

    def test_all_undecided_is_pending(self, evaluator):
        lines = [Line(A, LineType.DRAFT, True), Line(B, LineType.APPROVE), Line(C, LineType.CONSENT)]
        assert evaluator.derive_status(lines) == DocumentStatus.PENDING

    def test_any_rejection_wins(self, evaluator):
        lines = [Line(B, LineType.APPROVE, None), Line(C, LineType.CONSENT, False)]
        assert evaluator.derive_status(lines) == DocumentStatus.REJECTED

    def test_all_approved(self, evaluator):
        lines = [Line(B, LineType.APPROVE, True), Line(C, LineType.CONSENT, True)]
        assert evaluator.derive_status(lines) == DocumentStatus.APPROVED

    def test_cc_lines_never_evaluated(self, evaluator):
        lines = [Line(B, LineType.APPROVE, True), Line(C, LineType.CC, False), Line(D, LineType.CC)]
        assert evaluator.derive_status(lines) == DocumentStatus.APPROVED


class TestOrdering:

    def test_later_approver_waits(self, evaluator):
        lines = [Line(A, LineType.DRAFT, True), Line(B, LineType.APPROVE), Line(C, LineType.APPROVE)]

        with pytest.raises(OutOfOrderError) as exc:
            evaluator.ensure_can_act(lines, lines[2])

        assert exc.value.kind == ErrorKind.OUT_OF_ORDER
        assert exc.value.details == {"account_id": C, "waiting_for": B}

    def test_first_approver_may_act(self, evaluator):
        lines = [Line(A, LineType.DRAFT, True), Line(B, LineType.APPROVE), Line(C, LineType.APPROVE)]
        evaluator.ensure_can_act(lines, lines[1])

    def test_consent_acts_in_any_order(self, evaluator):
        lines = [Line(B, LineType.APPROVE), Line(C, LineType.CONSENT)]
        evaluator.ensure_can_act(lines, lines[1])

    def test_actionable_lines(self, evaluator):
        lines = [
            Line(A, LineType.DRAFT, True),
            Line(B, LineType.APPROVE, True),
            Line(C, LineType.APPROVE),
            Line(D, LineType.APPROVE),
            Line(E, LineType.CONSENT),
            Line(A, LineType.CC),
        ]
        assert evaluator.actionable_lines(lines) == [lines[2], lines[4]]
        assert evaluator.actionable_accounts(lines) == [C, E]
        assert evaluator.next_approver(lines) == C

    def test_next_approver_none_when_done(self, evaluator):
        lines = [Line(B, LineType.APPROVE, True)]
        assert evaluator.next_approver(lines) is None

    def test_draft_line(self, evaluator):
        lines = [Line(A, LineType.DRAFT), Line(B, LineType.APPROVE)]
        assert evaluator.draft_line(lines) is lines[0]
        assert evaluator.draft_line(lines[1:]) is None
