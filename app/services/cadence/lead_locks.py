"""Per-lead in-process locks for strict check-and-record admission.

Different leads never contend; callers for the same lead are serialized.
Cross-process serialization comes from the attempt log's row lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class LeadLockRegistry:
    """Hands out one lock per (organization_id, lead_id), dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._holders: dict[tuple[str, str], int] = {}

    @contextmanager
    def hold(self, organization_id: str, lead_id: str) -> Iterator[None]:
        key = (organization_id, lead_id)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


lead_locks = LeadLockRegistry()
