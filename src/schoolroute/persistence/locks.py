"""Keyed serialization for route instances, templates and absences."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class InstanceLocks:
    """Hands out one lock per key (usually a route instance id).

    Operations on different keys never contend; two operations on the same
    key (racing location pings, an absence arriving mid-ping) run one after
    the other. A key's lock lives only while someone holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks
