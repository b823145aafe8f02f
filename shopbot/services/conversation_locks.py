from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class ConversationLocks:
    """One lock per (tenant, phone) so a conversation has a single writer at a time.

    Locks are reference counted and dropped once no thread holds or waits on
    them. Only serializes writers inside this process.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[tuple[str, str], tuple[Lock, int]] = {}

    @contextmanager
    def hold(self, tenant_id: str, phone_number: str) -> Iterator[None]:
        key = (tenant_id, phone_number)
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                current, users = self._locks[key]
                if users <= 1:
                    self._locks.pop(key, None)
                else:
                    self._locks[key] = (current, users - 1)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)
