"""Redis lock: SET NX PX to acquire, owner-checked Lua script to release."""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from searchrepo.domain.shared.error import LockUnavailableError

logger = logging.getLogger(__name__)

# Delete only if we still own the lock
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLockProvider:
    """Distributed lock over a single Redis node.

    `ttl` bounds how long a crashed holder can keep the lock.
    """

    def __init__(
        self,
        client: Redis,
        ttl: float = 1200.0,
        retry_delay: float = 0.1,
        retry_max_delay: float = 2.0,
        prefix: str = "lock",
    ) -> None:
        self._client = client
        self.ttl = ttl
        self.retry_delay = retry_delay
        self.retry_max_delay = retry_max_delay
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def is_locked(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(key)))
        except RedisError as e:
            raise LockUnavailableError(f"Failed to check lock {key}: {e}") from e

    async def try_using(
        self,
        key: str,
        action: Callable[[], Awaitable[object]],
        timeout: float | None = None,
    ) -> bool:
        owner = str(uuid.uuid4())
        if not await self._acquire(key, owner, timeout):
            return False

        try:
            await action()
        finally:
            await self._release(key, owner)
        return True

    async def _acquire(self, key: str, owner: str, timeout: float | None) -> bool:
        start = time.monotonic()
        attempt = 0
        while True:
            try:
                acquired = await self._client.set(self._key(key), owner, px=int(self.ttl * 1000), nx=True)
            except RedisError as e:
                raise LockUnavailableError(f"Failed to acquire lock {key}: {e}") from e

            if acquired:
                logger.debug("Lock acquired: key=%s attempts=%d", key, attempt + 1)
                return True

            elapsed = time.monotonic() - start
            if timeout is not None and elapsed >= timeout:
                logger.debug("Lock %s busy after %d attempts", key, attempt + 1)
                return False

            delay = min(self.retry_delay * (2**attempt), self.retry_max_delay)
            if timeout is not None:
                delay = min(delay, timeout - elapsed)
            await asyncio.sleep(delay)
            attempt += 1

    async def _release(self, key: str, owner: str) -> None:
        try:
            released = await self._client.eval(RELEASE_SCRIPT, 1, self._key(key), owner)
        except RedisError as e:
            # The ttl frees it eventually
            logger.warning("Failed to release lock %s: %s", key, e)
            return
        if not released:
            logger.warning("Lock %s expired before release", key)
