"""In-process keyed locks serializing workflow operations per request.

Every mutation touching a request's applications, contracts, milestones or
escrows runs under the lock for that request id, so two concurrent accepts
(or a sign racing a cancel) are applied one after the other and each sees
the other's committed result. Row locks (SELECT ... FOR UPDATE) and version
checks in the database cover the multi-process case.

Usage:
    locks = get_lock_registry()
    async with locks.hold(request_id):
        ...
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Hashable


class KeyedLockRegistry:
    """One asyncio.Lock per key, dropped once nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


_registry: KeyedLockRegistry | None = None


def get_lock_registry() -> KeyedLockRegistry:
    """Return the process-wide lock registry (lazy singleton)."""
    global _registry
    if _registry is None:
        _registry = KeyedLockRegistry()
    return _registry
