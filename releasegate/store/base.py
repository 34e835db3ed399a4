"""Base classes for workflow storage.

Defines the narrow read/write interface the approval workflow uses to
reach projects, accounts, deployments, documents and ban periods, along
with the derived records it returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set

from releasegate.core.approval.states import DocumentStatus, DocumentType
from releasegate.core.schedule.types import BanType
from releasegate.core.schedule.window import TimeWindow


@dataclass
class ScheduledWindow:
    """A project's share of a submitted document's schedule window."""

    document_id: int
    project_id: int
    window: TimeWindow
    status: DocumentStatus
    document_type: DocumentType
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "project_id": self.project_id,
            "window": self.window.to_dict(),
            "status": self.status.value,
            "document_type": self.document_type.value,
            "title": self.title,
        }


class WorkflowStore(ABC):
    """
    Abstract storage interface for the approval workflow.

    All methods work inside one open unit of work; nothing is visible to
    other sessions until ``commit`` is called.
    """

    # Projects

    @abstractmethod
    def project_exists(self, project_id: int) -> bool:
        """Whether a non-deleted project with this ID exists."""
        pass

    @abstractmethod
    def projects_exist(self, project_ids: Iterable[int]) -> Set[int]:
        """Subset of ``project_ids`` naming non-deleted projects."""
        pass

    # Accounts

    @abstractmethod
    def account_exists(self, account_id: int) -> bool:
        pass

    @abstractmethod
    def get_account(self, account_id: int):
        """Account record, or None."""
        pass

    # Deployments

    @abstractmethod
    def get_deployment(self, deployment_id: int):
        """Deployment record, or None."""
        pass

    @abstractmethod
    def update_deployment(
        self,
        deployment_id: int,
        *,
        status=None,
        window: Optional[TimeWindow] = None,
    ) -> None:
        """Push an approval outcome or an admitted window to a deployment."""
        pass

    # Approval documents

    @abstractmethod
    def load_document(self, document_id: int, for_update: bool = False):
        """
        Load a document with its lines and projects.

        Args:
            document_id: Document ID
            for_update: Lock the row and refresh it from storage

        Returns:
            Document, or None if it does not exist
        """
        pass

    @abstractmethod
    def save_document(self, document) -> None:
        """
        Stage a new or changed document and flush it.

        Raises:
            StaleStateError: If another writer changed the row first
        """
        pass

    @abstractmethod
    def delete_document(self, document) -> None:
        pass

    @abstractmethod
    def list_documents(
        self,
        *,
        account_id: Optional[int] = None,
        status: Optional[DocumentStatus] = None,
        document_type: Optional[DocumentType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List:
        """Documents drafted by or routed to ``account_id``, newest first."""
        pass

    @abstractmethod
    def list_overlapping_windows(
        self,
        project_ids: Iterable[int],
        window: TimeWindow,
        statuses: Iterable[DocumentStatus],
        types: Iterable[DocumentType],
        exclude_document_id: Optional[int] = None,
    ) -> List[ScheduledWindow]:
        """Scheduled windows on ``project_ids`` that overlap ``window``."""
        pass

    @abstractmethod
    def list_scheduled_windows(
        self,
        window: TimeWindow,
        statuses: Iterable[DocumentStatus],
        types: Iterable[DocumentType],
        project_ids: Optional[Iterable[int]] = None,
    ) -> List[ScheduledWindow]:
        """Scheduled windows overlapping ``window``, on any project when ``project_ids`` is None."""
        pass


    @abstractmethod
    def add_history(self, document, record: Dict[str, Any]) -> None:
        """Append a state machine transition record to the audit trail."""
        pass

    @abstractmethod
    def list_history(self, document_id: int) -> List:
        pass

    # Ban periods

    @abstractmethod
    def list_active_bans(
        self,
        project_ids: Optional[Iterable[int]],
        start_date: date,
        end_date: date,
    ) -> List:
        """
        Non-deleted bans on ``project_ids`` that may occur in the date range.

        The result is a candidate list; callers expand recurrences and test
        overlap themselves.
        """
        pass

    @abstractmethod
    def search_bans(
        self,
        *,
        query: Optional[str] = None,
        ban_type: Optional[BanType] = None,
        project_ids: Optional[Iterable[int]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List:
        """Non-deleted bans matching the filters, ordered by start."""
        pass

    @abstractmethod
    def load_ban(self, ban_id: int):
        """Non-deleted ban period, or None."""
        pass

    @abstractmethod
    def save_ban(self, ban) -> None:
        pass

    # Unit of work

    @abstractmethod
    def commit(self) -> None:
        """
        Commit the unit of work.

        Raises:
            StaleStateError: If a versioned row changed underneath
        """
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass
