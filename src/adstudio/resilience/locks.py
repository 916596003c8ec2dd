"""In-process keyed locks.

Serializes mutations of one entity (an asset, a project) across threads while
letting different keys proceed in parallel. Cross-process safety comes from
the version compare-and-swap in the repositories; these locks only keep one
process from racing itself.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

__all__ = ["KeyedLock", "asset_locks", "project_locks"]


class _Entry:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.waiters = 0


class KeyedLock:
    """A re-entrant lock per key, dropped once nobody holds or waits on it."""

    def __init__(self, name: str = "keyed"):
        self.name = name
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.waiters += 1
        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.waiters -= 1
                if entry.waiters == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


asset_locks = KeyedLock("asset")
project_locks = KeyedLock("project")
