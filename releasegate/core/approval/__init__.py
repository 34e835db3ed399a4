"""Approval workflow module for releasegate.

Implements the approval document state machine and approval line evaluation.
"""

from .states import DocumentStatus, DocumentTransition, DocumentType, LineType, VALID_TRANSITIONS
from .machine import ApprovalStateMachine
from .lines import ApprovalLineEvaluator, LineSpec

__all__ = [
    "DocumentStatus",
    "DocumentTransition",
    "DocumentType",
    "LineType",
    "VALID_TRANSITIONS",
    "ApprovalStateMachine",
    "ApprovalLineEvaluator",
    "LineSpec",
]
