import builtins
from collections.abc import Iterable, Mapping
from typing import Any

from searchrepo.domain.shared.port.cache import CacheClient


class ScopedCacheClient:
    """Prefixes every key with a scope so document types never share keys.

    `remove_all()` without keys only clears this scope's keys that were
    written through this client.
    """

    def __init__(self, inner: CacheClient, scope: str) -> None:
        self.inner = inner
        self.scope = scope.lower()
        self._written: set[str] = set()

    def _key(self, key: str) -> str:
        return f"{self.scope}:{key}"

    async def get(self, key: str) -> Any | None:
        return await self.inner.get(self._key(key))

    async def get_all(self, keys: Iterable[str]) -> dict[str, Any]:
        mapping = {self._key(key): key for key in keys}
        found = await self.inner.get_all(mapping)
        return {mapping[key]: value for key, value in found.items()}

    async def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        await self.inner.set(self._key(key), value, expires_in)
        self._written.add(key)

    async def set_all(self, values: Mapping[str, Any], expires_in: float | None = None) -> None:
        await self.inner.set_all({self._key(key): value for key, value in values.items()}, expires_in)
        self._written.update(values)

    async def remove(self, key: str) -> bool:
        self._written.discard(key)
        return await self.inner.remove(self._key(key))

    async def remove_all(self, keys: Iterable[str] | None = None) -> int:
        keys = list(self._written) if keys is None else list(keys)
        self._written.difference_update(keys)
        return await self.inner.remove_all([self._key(key) for key in keys])

    async def get_set(self, key: str) -> builtins.set[str]:
        return await self.inner.get_set(self._key(key))

    async def add_to_set(self, key: str, values: Iterable[str], expires_in: float | None = None) -> None:
        await self.inner.add_to_set(self._key(key), values, expires_in)
        self._written.add(key)

    async def increment(self, key: str, amount: int = 1, expires_in: float | None = None) -> int:
        return await self.inner.increment(self._key(key), amount, expires_in)
