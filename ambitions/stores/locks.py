"""Per-goal write serialization.

Every mutating operation holds the lock of each goal whose record it
rewrites for the whole read-modify-write. Locks are always taken child
first, then parent. The ladder hierarchy must stay acyclic for that order to
hold, so every reparent also takes one shared ladder key before the goal
lock and keeps it across the cycle check and the parent_id write.

Locks live in-process. A multi-instance deployment on the SQL store needs a
database-level equivalent (SELECT ... FOR UPDATE) instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """A lazily created asyncio.Lock per key, discarded when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
