"""Per-intern mutual exclusion for read-decide-write sequences."""
import threading
import weakref
from contextlib import contextmanager

from .errors import ConflictError


class InternLocks:
    """
    One lock per intern id. Acquisition is bounded; a timeout is a ConflictError.
    Entries live only while some caller holds or waits on the lock.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, intern_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(intern_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[intern_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, intern_id: int):
        lock = self._lock_for(intern_id)
        if not lock.acquire(timeout=self.timeout):
            raise ConflictError(f"Intern {intern_id} is busy; retry the operation")
        try:
            yield
        finally:
            lock.release()
