"""Tests for concurrent writers on the same document."""

import gc
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from releasegate.core.approval.locks import DocumentLockRegistry
from releasegate.core.approval.service import WorkflowService
from releasegate.core.approval.states import DocumentStatus
from releasegate.core.errors import ErrorKind, StaleStateError, TransitionError
from releasegate.db.base import Base
from releasegate.db.models import ApprovalDocument, ApprovalHistory
from releasegate.store import SqlAlchemyStore

from tests.factories import create_account, create_project, document_request, window

SLOT = window("2024-06-03 10:00", "2024-06-03 11:00")


@pytest.fixture
def people(db_session):
    return [create_account(db_session) for _ in range(2)]


@pytest.fixture
def project(db_session):
    return create_project(db_session)


class TestDocumentLock:

    def test_held_lock_refuses_second_writer(self, service, locks, people, project):
        drafter, approver = people
        created = service.create_document(document_request(drafter, [approver], [project.id], window=SLOT))

        with locks.document(created["id"]):
            with pytest.raises(StaleStateError) as exc:
                service.submit(created["id"], actor_id=drafter.id)

        assert exc.value.kind == ErrorKind.STALE_STATE
        assert service.get_document(created["id"])["status"] == "DRAFT"
        assert not locks.is_locked(created["id"])

    def test_lock_released_after_failure(self, service, locks, people, project):
        drafter, approver = people
        created = service.create_document(document_request(drafter, [approver], [project.id], window=SLOT))
        service.submit(created["id"], actor_id=drafter.id)

        with pytest.raises(TransitionError):
            service.submit(created["id"], actor_id=drafter.id)

        assert not locks.is_locked(created["id"])

    def test_stale_version(self, service, people, project):
        drafter, approver = people
        created = service.create_document(document_request(drafter, [approver], [project.id], window=SLOT))
        service.submit(created["id"], actor_id=drafter.id)

        with pytest.raises(StaleStateError) as exc:
            service.cancel(created["id"], actor_id=drafter.id, expected_version=created["version"])

        assert exc.value.details["expected_version"] == created["version"]


class TestProjectLocks:

    def test_project_lock_timeout(self):
        registry = DocumentLockRegistry(project_timeout=0.05)
        entered = threading.Event()
        release = threading.Event()

        def hold():
            with registry.projects([3]):
                entered.set()
                release.wait(5)

        holder = threading.Thread(target=hold)
        holder.start()
        entered.wait(5)
        try:
            with pytest.raises(StaleStateError):
                with registry.projects([1, 3]):
                    pass
        finally:
            release.set()
            holder.join()

        # Project 1 was released when project 3 timed out
        with registry.projects([1]):
            pass

    def test_repeated_ids_taken_once(self):
        registry = DocumentLockRegistry(project_timeout=0.05)
        with registry.projects([2, 2, 1]):
            pass

    def test_released_locks_are_dropped(self):
        registry = DocumentLockRegistry(project_timeout=0.05)

        for document_id in range(50):
            with registry.document(document_id):
                assert registry.is_locked(document_id)
        with registry.projects(range(50)):
            assert registry.active_count() == 50
        gc.collect()

        assert registry.active_count() == 0
        assert not registry.is_locked(1)

    def test_held_lock_survives_collection(self):
        registry = DocumentLockRegistry()
        with registry.document(9):
            gc.collect()
            assert registry.active_count() == 1
            with pytest.raises(StaleStateError):
                with registry.document(9):
                    pass
        assert not registry.is_locked(9)



class TestConcurrentSessions:

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'workflow.db'}",
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    def test_lost_update_detected(self, file_engine):
        Session = sessionmaker(bind=file_engine, autoflush=False)
        setup = Session()
        drafter = create_account(setup)
        approver = create_account(setup)
        project = create_project(setup)
        setup.commit()

        service = WorkflowService(SqlAlchemyStore(setup), locks=DocumentLockRegistry())
        created = service.create_document(document_request(drafter, [approver], [project.id], window=SLOT))
        setup.close()

        first, second = SqlAlchemyStore(Session()), SqlAlchemyStore(Session())
        mine = first.load_document(created["id"])
        theirs = second.load_document(created["id"])

        theirs.title = "Changed elsewhere"
        second.save_document(theirs)
        second.commit()

        mine.title = "Changed here"
        with pytest.raises(StaleStateError):
            first.save_document(mine)

        first.rollback()
        assert first.load_document(created["id"]).title == "Changed elsewhere"

    def test_parallel_submits_on_one_document(self, file_engine):
        Session = sessionmaker(bind=file_engine, autoflush=False)
        setup = Session()
        drafter = create_account(setup)
        approver = create_account(setup)
        project = create_project(setup)
        setup.commit()

        locks = DocumentLockRegistry(project_timeout=1.0)
        service = WorkflowService(SqlAlchemyStore(setup), locks=locks)
        created = service.create_document(document_request(drafter, [approver], [project.id], window=SLOT))
        drafter_id = drafter.id
        setup.close()

        barrier = threading.Barrier(2)
        outcomes = []

        def submit():
            session = Session()
            try:
                writer = WorkflowService(SqlAlchemyStore(session), locks=locks)
                barrier.wait(5)
                try:
                    outcomes.append(writer.submit(created["id"], actor_id=drafter_id)["status"])
                except (StaleStateError, TransitionError) as exc:
                    outcomes.append(exc.kind)
            finally:
                session.close()

        threads = [threading.Thread(target=submit) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert len(outcomes) == 2
        assert outcomes.count("REQUESTED") == 1
        assert {o for o in outcomes if o != "REQUESTED"} <= {ErrorKind.STALE_STATE, ErrorKind.INVALID_TRANSITION}

        check = Session()
        try:
            assert check.get(ApprovalDocument, created["id"]).status == DocumentStatus.REQUESTED
            submits = check.query(ApprovalHistory).filter(ApprovalHistory.transition == "submit").count()
            assert submits == 1
        finally:
            check.close()
