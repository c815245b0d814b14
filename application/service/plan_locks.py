import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class PlanLockRegistry:
    """
    One asyncio.Lock per plan id, kept only while someone holds or waits on it.

    Serializes generation attempts for the same plan inside this process; the
    store's row lock and counter compare-and-set cover other processes.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, plan_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(plan_id)
        if lock is None:
            lock = self._locks[plan_id] = asyncio.Lock()
        self._users[plan_id] = self._users.get(plan_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[plan_id] -= 1
            if not self._users[plan_id]:
                del self._users[plan_id]
                del self._locks[plan_id]

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every coordinator built in this process
plan_locks = PlanLockRegistry()
