"""SQLAlchemy implementation of the workflow store."""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from releasegate.core.approval.states import DocumentStatus, DocumentType
from releasegate.core.errors import NotFoundError, StaleStateError
from releasegate.core.schedule.types import BanType
from releasegate.core.schedule.window import TimeWindow
from releasegate.db.models import (
    Account,
    ApprovalDocument,
    ApprovalHistory,
    ApprovalLine,
    BanPeriod,
    Deployment,
    DocumentProject,
    Project,
    ProjectBan,
)

from .base import ScheduledWindow, WorkflowStore

logger = logging.getLogger(__name__)


class SqlAlchemyStore(WorkflowStore):
    """Workflow store backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        """
        Initialize the store.

        Args:
            db: Database session; the store never closes it
        """
        self.db = db

    # Projects

    def project_exists(self, project_id: int) -> bool:
        return bool(self.projects_exist([project_id]))

    def projects_exist(self, project_ids: Iterable[int]) -> Set[int]:
        ids = list(set(project_ids))
        if not ids:
            return set()
        rows = self.db.query(Project.id).filter(
            and_(
                Project.id.in_(ids),
                Project.active_filter(),
            )
        ).all()
        return {row[0] for row in rows}

    # Accounts

    def account_exists(self, account_id: int) -> bool:
        return self.get_account(account_id) is not None

    def get_account(self, account_id: int) -> Optional[Account]:
        return self.db.get(Account, account_id)

    # Deployments

    def get_deployment(self, deployment_id: int) -> Optional[Deployment]:
        return self.db.get(Deployment, deployment_id)

    def update_deployment(
        self,
        deployment_id: int,
        *,
        status=None,
        window: Optional[TimeWindow] = None,
    ) -> None:
        deployment = self.get_deployment(deployment_id)
        if deployment is None:
            raise NotFoundError("Deployment", deployment_id)

        if status is not None:
            deployment.status = status
        if window is not None:
            deployment.scheduled_at = window.start
            deployment.scheduled_to_ended_at = window.end
        deployment.updated_at = datetime.utcnow()
        self.db.flush()

    # Approval documents

    def load_document(self, document_id: int, for_update: bool = False) -> Optional[ApprovalDocument]:
        query = self.db.query(ApprovalDocument).filter(ApprovalDocument.id == document_id)
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def save_document(self, document: ApprovalDocument) -> None:
        # Line-only edits must still bump the row version
        document.updated_at = datetime.utcnow()
        self.db.add(document)
        self._flush(document.id)

    def delete_document(self, document: ApprovalDocument) -> None:
        self.db.delete(document)
        self._flush(document.id)

    def list_documents(
        self,
        *,
        account_id: Optional[int] = None,
        status: Optional[DocumentStatus] = None,
        document_type: Optional[DocumentType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ApprovalDocument]:
        query = self.db.query(ApprovalDocument)

        if account_id is not None:
            query = query.filter(
                or_(
                    ApprovalDocument.drafter_id == account_id,
                    ApprovalDocument.lines.any(ApprovalLine.account_id == account_id),
                )
            )
        if status is not None:
            query = query.filter(ApprovalDocument.status == status)
        if document_type is not None:
            query = query.filter(ApprovalDocument.document_type == document_type)

        return query.order_by(
            ApprovalDocument.created_at.desc(),
            ApprovalDocument.id.desc(),
        ).offset(offset).limit(limit).all()

    def list_overlapping_windows(
        self,
        project_ids: Iterable[int],
        window: TimeWindow,
        statuses: Iterable[DocumentStatus],
        types: Iterable[DocumentType],
        exclude_document_id: Optional[int] = None,
    ) -> List[ScheduledWindow]:
        ids = list(set(project_ids))
        if not ids:
            return []
        return self._scheduled_windows(window, statuses, types, ids, exclude_document_id)

    def list_scheduled_windows(
        self,
        window: TimeWindow,
        statuses: Iterable[DocumentStatus],
        types: Iterable[DocumentType],
        project_ids: Optional[Iterable[int]] = None,
    ) -> List[ScheduledWindow]:
        ids = None if project_ids is None else list(set(project_ids))
        if ids == []:
            return []
        return self._scheduled_windows(window, statuses, types, ids)

    def _scheduled_windows(
        self,
        window: TimeWindow,
        statuses: Iterable[DocumentStatus],
        types: Iterable[DocumentType],
        project_ids: Optional[List[int]],
        exclude_document_id: Optional[int] = None,
    ) -> List[ScheduledWindow]:
        query = self.db.query(ApprovalDocument, DocumentProject.project_id).join(
            DocumentProject,
            DocumentProject.document_id == ApprovalDocument.id,
        ).filter(
            and_(
                ApprovalDocument.status.in_(list(statuses)),
                ApprovalDocument.document_type.in_(list(types)),
                ApprovalDocument.window_start.isnot(None),
                ApprovalDocument.window_start < window.end,
                ApprovalDocument.window_end > window.start,
            )
        )
        if project_ids is not None:
            query = query.filter(DocumentProject.project_id.in_(project_ids))
        if exclude_document_id is not None:
            query = query.filter(ApprovalDocument.id != exclude_document_id)

        rows = query.order_by(ApprovalDocument.window_start, ApprovalDocument.id, DocumentProject.project_id).all()
        return [
            ScheduledWindow(
                document_id=document.id,
                project_id=project_id,
                window=document.window,
                status=document.status,
                document_type=document.document_type,
                title=document.title,
            )
            for document, project_id in rows
        ]

    def add_history(self, document: ApprovalDocument, record: Dict[str, Any]) -> None:
        history = ApprovalHistory(
            document_id=document.id,
            from_state=record["from_state"],
            to_state=record["to_state"],
            transition=record["transition"],
            actor_id=record.get("actor_id"),
            comment=record.get("comment"),
            extra_data=record.get("metadata") or {},
            created_at=record.get("timestamp") or datetime.utcnow(),
        )
        self.db.add(history)

    def list_history(self, document_id: int) -> List[ApprovalHistory]:
        return self.db.query(ApprovalHistory).filter(
            ApprovalHistory.document_id == document_id
        ).order_by(ApprovalHistory.id).all()

    # Ban periods

    def list_active_bans(
        self,
        project_ids: Optional[Iterable[int]],
        start_date: date,
        end_date: date,
    ) -> List[BanPeriod]:
        q = self.db.query(BanPeriod).filter(
            and_(
                BanPeriod.active_filter(),
                BanPeriod.start_date <= end_date,
                # A recurring ban's last occurrence may run past its
                # recurrence end date, so only one-off bans are cut here
                or_(
                    BanPeriod.recurrence_type.isnot(None),
                    BanPeriod.end_date >= start_date,
                ),
            )
        )
        if project_ids is not None:
            ids = list(set(project_ids))
            if not ids:
                return []
            q = q.filter(BanPeriod.project_links.any(ProjectBan.project_id.in_(ids)))

        return q.order_by(BanPeriod.start_date, BanPeriod.start_time, BanPeriod.id).all()

    def search_bans(
        self,
        *,
        query: Optional[str] = None,
        ban_type: Optional[BanType] = None,
        project_ids: Optional[Iterable[int]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[BanPeriod]:
        q = self.db.query(BanPeriod).filter(BanPeriod.active_filter())

        if project_ids is not None:
            ids = list(set(project_ids))
            if not ids:
                return []
            q = q.filter(BanPeriod.project_links.any(ProjectBan.project_id.in_(ids)))

        if query:
            pattern = f"%{query.strip()}%"
            q = q.filter(
                or_(
                    BanPeriod.title.ilike(pattern),
                    BanPeriod.description.ilike(pattern),
                )
            )

        if ban_type is not None:
            q = q.filter(BanPeriod.ban_type == ban_type)

        if end_date is not None:
            q = q.filter(BanPeriod.start_date <= end_date)

        if start_date is not None:
            q = q.filter(
                or_(
                    and_(
                        BanPeriod.recurrence_type.is_(None),
                        BanPeriod.end_date >= start_date,
                    ),
                    and_(
                        BanPeriod.recurrence_type.isnot(None),
                        or_(
                            BanPeriod.recurrence_end_date.is_(None),
                            BanPeriod.recurrence_end_date >= start_date,
                        ),
                    ),
                )
            )

        return q.order_by(BanPeriod.start_date, BanPeriod.start_time, BanPeriod.id).all()

    def load_ban(self, ban_id: int) -> Optional[BanPeriod]:
        return self.db.query(BanPeriod).filter(
            and_(
                BanPeriod.id == ban_id,
                BanPeriod.active_filter(),
            )
        ).first()

    def save_ban(self, ban: BanPeriod) -> None:
        self.db.add(ban)
        self.db.flush()

    # Unit of work

    def commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning("Commit lost a concurrent update: %s", e)
            raise StaleStateError(
                "Document was changed by another writer",
                details={"reason": str(e)},
            ) from e

    def rollback(self) -> None:
        self.db.rollback()

    def _flush(self, document_id: Optional[int]) -> None:
        try:
            self.db.flush()
        except StaleDataError as e:
            logger.warning("Document %s changed underneath: %s", document_id, e)
            raise StaleStateError(
                f"Document {document_id} was changed by another writer",
                details={"document_id": document_id},
            ) from e
