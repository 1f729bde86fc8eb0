"""Fixed-window throttle exposed as a lock."""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

from searchrepo.domain.shared.error import CacheUnavailableError, LockUnavailableError
from searchrepo.domain.shared.port.cache import CacheClient

logger = logging.getLogger(__name__)


class ThrottlingLockProvider:
    """Grants at most `max_hits` acquisitions of a key per `period` seconds.

    Hits are counted in the cache, so every process sharing the cache shares
    the window. Releasing is a no-op: a granted hit stays spent until the
    window rolls over.
    """

    def __init__(self, cache: CacheClient, period: float = 60.0, max_hits: int = 1) -> None:
        if period <= 0 or max_hits < 1:
            raise ValueError("period must be positive and max_hits at least 1")
        self.cache = cache
        self.period = period
        self.max_hits = max_hits

    def _window(self, now: float) -> int:
        return math.floor(now / self.period)

    def _window_key(self, key: str, window: int) -> str:
        return f"throttle:{key}:{window}"

    async def is_locked(self, key: str) -> bool:
        try:
            hits = await self.cache.get(self._window_key(key, self._window(time.time())))
        except CacheUnavailableError as e:
            raise LockUnavailableError(f"Throttle state for {key} unavailable: {e}") from e
        return hits is not None and int(hits) >= self.max_hits

    async def try_using(
        self,
        key: str,
        action: Callable[[], Awaitable[object]],
        timeout: float | None = None,
    ) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            now = time.time()
            window = self._window(now)
            try:
                hits = await self.cache.increment(self._window_key(key, window), 1, expires_in=self.period)
            except CacheUnavailableError as e:
                raise LockUnavailableError(f"Throttle state for {key} unavailable: {e}") from e

            if hits <= self.max_hits:
                await action()
                return True

            wait = (window + 1) * self.period - now
            if deadline is not None and time.monotonic() + wait > deadline:
                logger.debug("Throttled %s: %d hits in current window", key, hits)
                return False
            await asyncio.sleep(wait)
