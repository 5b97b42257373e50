"""In-process locks keyed by referrer or referral id."""

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Generator


class KeyedLock:
    """A re-entrant mutex per key, dropped once nobody holds or waits for it.

    Serializes same-key work inside one process. Cross-process safety comes
    from the conditional UPDATEs in the ledger, not from this lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: str) -> Generator[None, None, None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._users[key] += 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]
