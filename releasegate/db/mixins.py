"""
Soft delete mixin.

Adds a ``deleted_at`` timestamp column. Models that include this mixin are
marked as deleted rather than physically removed, so they stay available
for audit.

Usage:
    class BanPeriod(SoftDeleteMixin, Base):
        ...

    ban.soft_delete()
    db.query(BanPeriod).filter(BanPeriod.active_filter())
"""

from datetime import datetime

from sqlalchemy import Column, DateTime


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = Column(DateTime, nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.utcnow()

    def restore(self):
        """Restore a soft-deleted record."""
        self.deleted_at = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def active_filter(cls):
        """Filter clause excluding soft-deleted records."""
        return cls.deleted_at.is_(None)
