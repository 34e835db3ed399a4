"""In-process locks for approval documents and projects.

A document lock is taken without waiting: a second writer on the same
document fails at once with STALE_STATE. Project locks serialize submits
that touch the same projects and are always taken in ascending ID order.
"""

import logging
import threading
import weakref
from contextlib import ExitStack, contextmanager
from typing import Hashable, Iterable, Iterator

from releasegate.core.errors import StaleStateError

logger = logging.getLogger(__name__)

PROJECT_LOCK_TIMEOUT = 10.0  # seconds


class _NamedLock:
    """threading.Lock that can be weakly referenced."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self):
        self._lock = threading.Lock()

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return self._lock.acquire(blocking, timeout)

    def release(self) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


class DocumentLockRegistry:
    """Named locks, created on first use and dropped once unreferenced."""

    def __init__(self, project_timeout: float = PROJECT_LOCK_TIMEOUT):
        self.project_timeout = project_timeout
        self._locks: "weakref.WeakValueDictionary[Hashable, _NamedLock]" = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def active_count(self) -> int:
        """Locks currently referenced by some caller."""
        with self._guard:
            return len(self._locks)

    def _lock_for(self, key: Hashable) -> _NamedLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = _NamedLock()
                self._locks[key] = lock
            return lock

    def is_locked(self, document_id: int) -> bool:
        with self._guard:
            lock = self._locks.get(("document", document_id))
        return lock is not None and lock.locked()

    @contextmanager
    def document(self, document_id: int) -> Iterator[None]:
        """
        Hold the document lock for the duration of the block.

        Raises:
            StaleStateError: If another writer holds the lock
        """
        lock = self._lock_for(("document", document_id))
        if not lock.acquire(blocking=False):
            logger.warning("Document %s is busy", document_id)
            raise StaleStateError(
                f"Document {document_id} is being modified by another request",
                details={"document_id": document_id},
            )
        try:
            yield
        finally:
            lock.release()

    @contextmanager
    def projects(self, project_ids: Iterable[int]) -> Iterator[None]:
        """
        Hold every project lock, acquired in ascending ID order.

        Raises:
            StaleStateError: If a project lock is not freed in time
        """
        with ExitStack() as stack:
            for project_id in sorted(set(project_ids)):
                lock = self._lock_for(("project", project_id))
                if not lock.acquire(timeout=self.project_timeout):
                    logger.warning("Timed out waiting for project %s", project_id)
                    raise StaleStateError(
                        f"Project {project_id} schedule is busy",
                        details={"project_id": project_id},
                    )
                stack.callback(lock.release)
            yield


# Shared by every service in the process
default_locks = DocumentLockRegistry()
