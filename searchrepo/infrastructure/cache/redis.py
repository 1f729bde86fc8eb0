"""Redis implementation of the CacheClient port.

Values are stored as JSON strings; sets are native Redis sets.
"""

import builtins
import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from searchrepo.domain.shared.error import CacheUnavailableError

logger = logging.getLogger(__name__)


def _millis(seconds: float | None) -> int | None:
    if seconds is None:
        return None
    return max(1, int(seconds * 1000))


class RedisCacheClient:
    def __init__(self, client: Redis, default_expires_in: float | None = None) -> None:
        """
        Args:
            client: redis.asyncio client created with decode_responses=True
            default_expires_in: Expiry in seconds for writes that give none
        """
        self._client = client
        self.default_expires_in = default_expires_in

    def _ttl(self, expires_in: float | None) -> int | None:
        return _millis(expires_in if expires_in is not None else self.default_expires_in)

    async def get(self, key: str) -> Any | None:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to get key {key}: {e}") from e
        return json.loads(value) if value is not None else None

    async def get_all(self, keys: Iterable[str]) -> dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            values = await self._client.mget(keys)
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to get {len(keys)} keys: {e}") from e
        return {key: json.loads(value) for key, value in zip(keys, values) if value is not None}

    async def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        try:
            if value is None:
                await self._client.delete(key)
            else:
                await self._client.set(key, json.dumps(value), px=self._ttl(expires_in))
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to set key {key}: {e}") from e

    async def set_all(self, values: Mapping[str, Any], expires_in: float | None = None) -> None:
        if not values:
            return
        ttl = self._ttl(expires_in)
        try:
            # MULTI/EXEC: the batch lands whole or not at all
            async with self._client.pipeline(transaction=True) as pipe:
                for key, value in values.items():
                    if value is not None:
                        pipe.set(key, json.dumps(value), px=ttl)
                await pipe.execute()
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to set {len(values)} keys: {e}") from e

    async def remove(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to remove key {key}: {e}") from e

    async def remove_all(self, keys: Iterable[str] | None = None) -> int:
        try:
            if keys is None:
                count = await self._client.dbsize()
                await self._client.flushdb()
                return int(count)
            keys = list(keys)
            if not keys:
                return 0
            return int(await self._client.delete(*keys))
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to remove keys: {e}") from e

    async def get_set(self, key: str) -> builtins.set[str]:
        try:
            return set(await self._client.smembers(key))
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to read set {key}: {e}") from e

    async def add_to_set(self, key: str, values: Iterable[str], expires_in: float | None = None) -> None:
        values = list(values)
        if not values:
            return
        ttl = self._ttl(expires_in)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.sadd(key, *values)
                if ttl is not None:
                    pipe.pexpire(key, ttl, nx=True)
                await pipe.execute()
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to add to set {key}: {e}") from e

    async def increment(self, key: str, amount: int = 1, expires_in: float | None = None) -> int:
        ttl = _millis(expires_in)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incrby(key, amount)
                if ttl is not None:
                    # Only the first increment of a window sets its expiry
                    pipe.pexpire(key, ttl, nx=True)
                results = await pipe.execute()
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to increment {key}: {e}") from e
        return int(results[0])
