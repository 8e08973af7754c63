"""Per-aggregate locks serializing writes to one order inside a process."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID


class AggregateLockProvider:
    """In-process lock provider keyed by aggregate id.

    Writes to different orders proceed in parallel. An id's lock lives only
    while some task holds or waits for it, so the table stays as small as
    the number of orders being written at once. The bookkeeping has no await
    points and is therefore atomic on the event loop. Locks are
    process-local; cross-process safety still relies on the optimistic
    version check.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._holders: dict[UUID, int] = {}

    @asynccontextmanager
    async def acquire(self, aggregate_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.get(aggregate_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[aggregate_id] = lock
        self._holders[aggregate_id] = self._holders.get(aggregate_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._holders[aggregate_id] -= 1
            if self._holders[aggregate_id] == 0:
                del self._holders[aggregate_id]
                del self._locks[aggregate_id]

    def __len__(self) -> int:
        return len(self._locks)


class NoOpLockProvider:
    """Lock provider that performs no locking, for single-task callers."""

    @asynccontextmanager
    async def acquire(self, aggregate_id: UUID) -> AsyncIterator[None]:
        yield


_default_provider = AggregateLockProvider()


def get_lock_provider() -> AggregateLockProvider:
    """Return the process-wide lock provider."""
    return _default_provider
