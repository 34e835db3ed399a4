"""Ban period database models.

A ban period is a maintenance window during which deployments to its
related projects are refused. Bans are soft-deleted, never removed.
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship

from releasegate.core.schedule.types import (
    BanType,
    RecurrenceType,
    RecurrenceWeekOfMonth,
    RecurrenceWeekday,
)
from releasegate.db.base import Base
from releasegate.db.mixins import SoftDeleteMixin


class BanPeriod(SoftDeleteMixin, Base):
    __tablename__ = "ban_periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    ban_type = Column(SAEnum(BanType, native_enum=False, length=30), nullable=False)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)

    # Base interval [start_date start_time, end_date end_time)
    start_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    end_time = Column(Time, nullable=False)

    # Recurrence, all null for a one-off ban
    recurrence_type = Column(SAEnum(RecurrenceType, native_enum=False, length=20), nullable=True)
    recurrence_weekday = Column(SAEnum(RecurrenceWeekday, native_enum=False, length=10), nullable=True)
    recurrence_week_of_month = Column(SAEnum(RecurrenceWeekOfMonth, native_enum=False, length=10), nullable=True)
    recurrence_end_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project_links = relationship(
        "ProjectBan",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start_date, self.start_time)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.end_date, self.end_time)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_type is not None

    @property
    def project_ids(self) -> list[int]:
        return sorted(link.project_id for link in self.project_links)

    @project_ids.setter
    def project_ids(self, project_ids) -> None:
        self.project_links = [ProjectBan(project_id=project_id) for project_id in sorted(set(project_ids))]

    def __repr__(self) -> str:
        return f"<BanPeriod {self.id} {self.title} [{self.ban_type}]>"


class ProjectBan(Base):
    """Project blocked by a ban period."""
    __tablename__ = "project_bans"

    ban_id = Column(Integer, ForeignKey("ban_periods.id", ondelete="CASCADE"), primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), primary_key=True, index=True)
