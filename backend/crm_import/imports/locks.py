import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

logger = logging.getLogger(__name__)


class KeyLockManager:
    """Per-key asyncio locks serializing lookup-then-insert on one logical key.

    Two rows carrying the same natural key (processed by concurrent batches)
    must not both observe "no existing record" and both insert. Locks are
    dropped once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                logger.debug("Acquired import lock %s", key)
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every executor in the process, so concurrent requests importing
# the same key serialize on one lock.
import_locks = KeyLockManager()
