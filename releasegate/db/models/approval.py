"""Approval workflow database models.

Stores approval documents, their ordered approval lines and the
state transition history.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from releasegate.core.approval.states import DocumentStatus, DocumentType, LineType
from releasegate.core.schedule.window import window_or_none
from releasegate.db.base import Base


class ApprovalDocument(Base):
    """
    A plan, deployment, report, retry or rollback request moving through
    approval states.

    The document exclusively owns its lines and project links; children keep
    only the ``document_id`` back-reference for lookup.
    """
    __tablename__ = "approval_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Related entities
    deployment_id = Column(Integer, ForeignKey("deployments.id", ondelete="SET NULL"), nullable=True, index=True)
    drafter_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    next_approver_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)

    # Document body
    document_type = Column(SAEnum(DocumentType, native_enum=False, length=20), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False, default="")
    service = Column(String(255), nullable=True)

    # Workflow state
    status = Column(SAEnum(DocumentStatus, native_enum=False, length=20), nullable=False,
                    default=DocumentStatus.DRAFT, index=True)
    finalized_at = Column(DateTime, nullable=True)

    # Proposed schedule
    window_start = Column(DateTime, nullable=True, index=True)
    window_end = Column(DateTime, nullable=True)

    # Row version for optimistic concurrency
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lines = relationship(
        "ApprovalLine",
        order_by="ApprovalLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    project_links = relationship(
        "DocumentProject",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    history = relationship(
        "ApprovalHistory",
        order_by="ApprovalHistory.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def project_ids(self) -> list[int]:
        return sorted(link.project_id for link in self.project_links)

    @project_ids.setter
    def project_ids(self, project_ids) -> None:
        wanted = set(project_ids)
        self.project_links = [link for link in self.project_links if link.project_id in wanted]
        existing = {link.project_id for link in self.project_links}
        for project_id in sorted(wanted - existing):
            self.project_links.append(DocumentProject(project_id=project_id))

    @property
    def window(self):
        return window_or_none(self.window_start, self.window_end)

    @window.setter
    def window(self, window) -> None:
        if window is None:
            self.window_start = None
            self.window_end = None
        else:
            self.window_start = window.start
            self.window_end = window.end

    def __repr__(self) -> str:
        return f"<ApprovalDocument {self.id} {self.document_type} [{self.status}]>"


class ApprovalLine(Base):
    """One approver, consenter, CC or drafter slot on a document."""
    __tablename__ = "approval_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("approval_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    line_type = Column(SAEnum(LineType, native_enum=False, length=20), nullable=False)

    # Authority order, fixed at creation
    position = Column(Integer, nullable=False)

    # None until acted on
    decision = Column(Boolean, nullable=True)
    comment = Column(Text, nullable=False, default="")
    decided_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<ApprovalLine {self.position} {self.line_type}:{self.account_id} [{self.decision}]>"


class DocumentProject(Base):
    """Project touched by a document's schedule."""
    __tablename__ = "approval_document_projects"

    document_id = Column(Integer, ForeignKey("approval_documents.id", ondelete="CASCADE"), primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), primary_key=True, index=True)


class ApprovalHistory(Base):
    """
    Records all state transitions for approval documents.

    Provides a complete audit trail of the approval workflow.
    """
    __tablename__ = "approval_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("approval_documents.id", ondelete="CASCADE"), nullable=False, index=True)

    # Transition details
    from_state = Column(String(20), nullable=False)
    to_state = Column(String(20), nullable=False)
    transition = Column(String(20), nullable=False)

    # Actor
    actor_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)

    comment = Column(Text, nullable=True)
    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.from_state} -> {self.to_state}>"
