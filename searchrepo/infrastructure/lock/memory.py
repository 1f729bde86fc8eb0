"""Process-local locks. Suitable for a single worker and for tests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class InMemoryLockProvider:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    async def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    async def try_using(
        self,
        key: str,
        action: Callable[[], Awaitable[object]],
        timeout: float | None = None,
    ) -> bool:
        lock = self._locks.setdefault(key, asyncio.Lock())

        if timeout is not None and timeout <= 0:
            if lock.locked():
                logger.debug("Lock %s busy", key)
                return False
            await lock.acquire()
        else:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.debug("Timed out waiting for lock %s", key)
                return False

        try:
            await action()
        finally:
            lock.release()
        return True
