"""Deployment database model.

The approval core only reads deployments and pushes the admitted schedule
and the final approval outcome back to them; execution is handled elsewhere.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String

from releasegate.db.base import Base


class DeploymentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Deployment(Base):
    __tablename__ = "deployments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    issuer_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    status = Column(SAEnum(DeploymentStatus, native_enum=False, length=20), nullable=False,
                    default=DeploymentStatus.PENDING, index=True)

    # Admitted schedule
    scheduled_at = Column(DateTime, nullable=True)
    scheduled_to_ended_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Deployment {self.id} {self.title} [{self.status}]>"
