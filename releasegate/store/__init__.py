"""Storage layer for the approval workflow."""

from .base import ScheduledWindow, WorkflowStore
from .sql import SqlAlchemyStore

__all__ = ["ScheduledWindow", "SqlAlchemyStore", "WorkflowStore"]
