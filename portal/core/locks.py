# File: portal/core/locks.py

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """
    Process-local locks keyed by an arbitrary value (user id, session id...).

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the table does not grow with every key ever seen. Cross-process
    safety still comes from the database constraints.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._refs: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refs[key] = self._refs.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


submitter_locks = KeyedLocks()
issue_locks = KeyedLocks()
payment_locks = KeyedLocks()
