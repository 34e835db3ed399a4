from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from releasegate.db.base import Base
from releasegate.db.mixins import SoftDeleteMixin


class Project(SoftDeleteMixin, Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    repository_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.name}>"
