"""Approval document states, types and transitions.

State Machine Diagram:

    ┌──────────┐
    │  DRAFT   │ ← Initial state (saved, not yet submitted)
    └────┬─────┘
         │ submit (schedule accepted, lines valid)
    ┌────▼──────┐
    │ REQUESTED │ (waiting for the drafter's own acknowledgment)
    └────┬──────┘
         │ acknowledge (DRAFT line recorded, or no DRAFT line)
    ┌────▼─────┐
    │ PENDING  │ (approval line acting)
    └────┬─────┘
         │
         ├─────────────────────┐
         │                     │
    ┌────▼─────┐         ┌─────▼────┐
    │ APPROVED │         │ REJECTED │
    └──────────┘         └──────────┘

DRAFT, REQUESTED and PENDING can also be canceled by the drafter (CANCELED).
APPROVED, REJECTED and CANCELED are terminal.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Set


class DocumentStatus(str, Enum):
    """States in the approval document workflow."""

    DRAFT = "DRAFT"
    REQUESTED = "REQUESTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class DocumentType(str, Enum):
    """Kinds of approval documents."""

    PLAN = "PLAN"
    DEPLOYMENT = "DEPLOYMENT"
    REPORT = "REPORT"
    RETRY = "RETRY"
    ROLLBACK = "ROLLBACK"
    DRAFT = "DRAFT"


class LineType(str, Enum):
    """Roles an account can hold on an approval line."""

    DRAFT = "DRAFT"        # Drafter's own acknowledgment
    APPROVE = "APPROVE"    # Sequential approver
    CONSENT = "CONSENT"    # Consenter, any order
    CC = "CC"              # Carbon copy, never blocks


class DocumentTransition(str, Enum):
    """Actions that trigger document state transitions."""

    SUBMIT = "submit"            # DRAFT → REQUESTED
    ACKNOWLEDGE = "acknowledge"  # REQUESTED → PENDING
    APPROVE = "approve"          # PENDING → APPROVED
    REJECT = "reject"            # PENDING → REJECTED
    CANCEL = "cancel"            # DRAFT/REQUESTED/PENDING → CANCELED


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: DocumentStatus
    to_state: DocumentStatus
    transition: DocumentTransition
    drafter_only: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(DocumentStatus.DRAFT, DocumentStatus.REQUESTED, DocumentTransition.SUBMIT,
                   drafter_only=True),
    TransitionRule(DocumentStatus.REQUESTED, DocumentStatus.PENDING, DocumentTransition.ACKNOWLEDGE),

    # Line evaluation outcomes
    TransitionRule(DocumentStatus.PENDING, DocumentStatus.APPROVED, DocumentTransition.APPROVE),
    TransitionRule(DocumentStatus.PENDING, DocumentStatus.REJECTED, DocumentTransition.REJECT),

    # Caller-driven cancellation
    TransitionRule(DocumentStatus.DRAFT, DocumentStatus.CANCELED, DocumentTransition.CANCEL,
                   drafter_only=True),
    TransitionRule(DocumentStatus.REQUESTED, DocumentStatus.CANCELED, DocumentTransition.CANCEL,
                   drafter_only=True),
    TransitionRule(DocumentStatus.PENDING, DocumentStatus.CANCELED, DocumentTransition.CANCEL,
                   drafter_only=True),
]

VALID_TRANSITIONS: Dict[DocumentStatus, Set[DocumentTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[DocumentStatus, DocumentTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    if rule.from_state not in VALID_TRANSITIONS:
        VALID_TRANSITIONS[rule.from_state] = set()
    VALID_TRANSITIONS[rule.from_state].add(rule.transition)

    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


# No outgoing transitions, no further line decisions
TERMINAL_STATES: Set[DocumentStatus] = {
    DocumentStatus.APPROVED,
    DocumentStatus.REJECTED,
    DocumentStatus.CANCELED,
}

# States whose window occupies the schedule
ACTIVE_SCHEDULE_STATES: Set[DocumentStatus] = {
    DocumentStatus.REQUESTED,
    DocumentStatus.PENDING,
    DocumentStatus.APPROVED,
}

# Documents whose window counts as a scheduled deployment
SCHEDULED_TYPES: Set[DocumentType] = {
    DocumentType.DEPLOYMENT,
    DocumentType.RETRY,
    DocumentType.ROLLBACK,
}

# Documents that never carry a schedule window
WINDOWLESS_TYPES: Set[DocumentType] = {
    DocumentType.REPORT,
}

# Lines that decide the document outcome
EVALUATED_LINE_TYPES: Set[LineType] = {
    LineType.APPROVE,
    LineType.CONSENT,
}


# Presentation labels, kept apart from the enums
STATUS_LABELS: Dict[DocumentStatus, str] = {
    DocumentStatus.DRAFT: "Draft",
    DocumentStatus.REQUESTED: "Requested",
    DocumentStatus.PENDING: "Awaiting approval",
    DocumentStatus.APPROVED: "Approved",
    DocumentStatus.REJECTED: "Rejected",
    DocumentStatus.CANCELED: "Canceled",
}

TYPE_LABELS: Dict[DocumentType, str] = {
    DocumentType.PLAN: "Deployment plan",
    DocumentType.DEPLOYMENT: "Deployment",
    DocumentType.REPORT: "Deployment report",
    DocumentType.RETRY: "Retry",
    DocumentType.ROLLBACK: "Rollback",
    DocumentType.DRAFT: "Draft",
}

LINE_TYPE_LABELS: Dict[LineType, str] = {
    LineType.DRAFT: "Drafter",
    LineType.APPROVE: "Approver",
    LineType.CONSENT: "Consenter",
    LineType.CC: "CC",
}

DECISION_LABELS: Dict[Optional[bool], str] = {
    None: "Waiting",
    True: "Approved",
    False: "Rejected",
}


def can_transition(from_state: DocumentStatus, transition: DocumentTransition) -> bool:
    """Check if a transition is valid from the given state."""
    valid = VALID_TRANSITIONS.get(from_state, set())
    return transition in valid


def get_transition_rule(
    from_state: DocumentStatus, transition: DocumentTransition
) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(
    from_state: DocumentStatus, transition: DocumentTransition
) -> Optional[DocumentStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None


def has_window(document_type: DocumentType) -> bool:
    """Whether documents of this type are checked against the schedule."""
    return document_type not in WINDOWLESS_TYPES
