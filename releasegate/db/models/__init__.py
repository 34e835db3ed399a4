"""Database models for releasegate."""

from releasegate.db.models.account import Account, AccountRole
from releasegate.db.models.project import Project
from releasegate.db.models.deployment import Deployment, DeploymentStatus
from releasegate.db.models.ban import BanPeriod, ProjectBan
from releasegate.db.models.approval import (
    ApprovalDocument,
    ApprovalHistory,
    ApprovalLine,
    DocumentProject,
)

__all__ = [
    "Account",
    "AccountRole",
    "Project",
    "Deployment",
    "DeploymentStatus",
    "BanPeriod",
    "ProjectBan",
    "ApprovalDocument",
    "ApprovalHistory",
    "ApprovalLine",
    "DocumentProject",
]
