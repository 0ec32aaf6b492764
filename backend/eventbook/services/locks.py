"""
Per-event mutual exclusion inside one worker process.

All reserve/cancel/delete sequences for the same event run one at a time, in
arrival order, so confirmations are handed out in the order they commit.
Across processes the conditional UPDATE in the ledger is what keeps the
count correct; this registry only removes pointless contention on the
event row and gives a deterministic order within a worker.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class EventLockRegistry:
    """asyncio.Lock per event id, dropped as soon as nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, event_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        self._users[event_id] = self._users.get(event_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[event_id] -= 1
            if self._users[event_id] == 0:
                del self._users[event_id]
                del self._locks[event_id]

    def __len__(self) -> int:
        return len(self._locks)


event_locks = EventLockRegistry()
