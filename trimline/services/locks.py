"""
Per-revision locks.

Every mutating operation on a revision runs under that revision's lock, so
its counters see one writer at a time. Locks are re-entrant: a batch holds
the lock for its whole run while calling the per-chapter operations.

An entry lives only while some thread holds or waits on it, so ids that are
never seen again (finished revisions, unknown ids) do not accumulate.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class RevisionLockRegistry:
    """Hands out one re-entrant lock per revision id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def __contains__(self, revision_id: str) -> bool:
        with self._guard:
            return revision_id in self._locks

    @contextmanager
    def hold(self, revision_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(revision_id)
            if entry is None:
                entry = self._locks[revision_id] = _LockEntry()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[revision_id]


_registry: Optional[RevisionLockRegistry] = None


def get_revision_locks() -> RevisionLockRegistry:
    """Get the process-wide lock registry."""
    global _registry
    if _registry is None:
        _registry = RevisionLockRegistry()
    return _registry
