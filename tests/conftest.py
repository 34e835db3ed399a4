"""Pytest configuration and shared fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from releasegate.common.config import WorkflowConfig
from releasegate.core.approval.locks import DocumentLockRegistry
from releasegate.core.approval.service import WorkflowService
from releasegate.core.schedule.bans import BanRegistry
from releasegate.db.base import Base
from releasegate.db import models  # noqa: F401
from releasegate.store import SqlAlchemyStore


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def workflow_config():
    return WorkflowConfig()


@pytest.fixture
def store(db_session):
    return SqlAlchemyStore(db_session)


@pytest.fixture
def locks():
    return DocumentLockRegistry(project_timeout=1.0)


@pytest.fixture
def registry(store, workflow_config):
    return BanRegistry(store, workflow_config)


@pytest.fixture
def service(store, workflow_config, locks, registry):
    return WorkflowService(store, workflow_config, locks=locks, registry=registry)


@pytest.fixture
def sample_policy():
    """Sample workflow policy dictionary."""
    return {
        "workflow": {
            "scheduler_roles": ["HEAD"],
            "recurrence_horizon_days": 90,
            "ban_listing_days": 14,
            "scheduled_types": ["DEPLOYMENT", "ROLLBACK"],
            "windowless_types": ["REPORT", "DRAFT"],
        },
    }
