from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, Integer, String

from releasegate.db.base import Base


class AccountRole(str, Enum):
    DEVELOPER = "DEVELOPER"
    MANAGER = "MANAGER"
    HEAD = "HEAD"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    role = Column(SAEnum(AccountRole, native_enum=False, length=20), nullable=False,
                  default=AccountRole.DEVELOPER)
    department = Column(String(100), nullable=True)
    position = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Account {self.id} {self.name} [{self.role}]>"
