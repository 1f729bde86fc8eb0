"""Process-local cache backed by cachetools."""

import builtins
import copy
import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from cachetools import TLRUCache

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: Any
    expires_at: float


def _time_to_use(key: str, entry: _Entry, now: float) -> float:
    return entry.expires_at


class InMemoryCacheClient:
    """CacheClient over a cachetools TLRU cache.

    Every entry carries its own deadline; `default_expires_in` applies when a
    write gives none, and None there means entries only leave on eviction.
    Values are deep-copied on the way in and out so callers cannot mutate
    cached state. No method awaits, so each call is atomic on the event loop.
    """

    def __init__(self, max_items: int = 10000, default_expires_in: float | None = None) -> None:
        self.max_items = max_items
        self.default_expires_in = default_expires_in
        self._cache: TLRUCache[str, _Entry] = TLRUCache(maxsize=max_items, ttu=_time_to_use)
        logger.debug("In-memory cache initialized: max_items=%d", max_items)

    def _deadline(self, expires_in: float | None) -> float:
        if expires_in is None:
            expires_in = self.default_expires_in
        if expires_in is None:
            return math.inf
        return self._cache.timer() + expires_in

    def _lookup(self, key: str) -> _Entry | None:
        return self._cache.get(key)

    async def get(self, key: str) -> Any | None:
        entry = self._lookup(key)
        return copy.deepcopy(entry.value) if entry is not None else None

    async def get_all(self, keys: Iterable[str]) -> dict[str, Any]:
        found = {}
        for key in keys:
            entry = self._lookup(key)
            if entry is not None:
                found[key] = copy.deepcopy(entry.value)
        return found

    async def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        if value is None:
            self._cache.pop(key, None)
            return
        self._cache[key] = _Entry(copy.deepcopy(value), self._deadline(expires_in))

    async def set_all(self, values: Mapping[str, Any], expires_in: float | None = None) -> None:
        deadline = self._deadline(expires_in)
        entries = {key: _Entry(copy.deepcopy(value), deadline) for key, value in values.items() if value is not None}
        self._cache.update(entries)

    async def remove(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def remove_all(self, keys: Iterable[str] | None = None) -> int:
        if keys is None:
            count = len(self._cache)
            self._cache.clear()
            return count
        return sum(1 for key in list(keys) if self._cache.pop(key, None) is not None)

    async def get_set(self, key: str) -> builtins.set[str]:
        entry = self._lookup(key)
        return set(entry.value) if entry is not None else set()

    async def add_to_set(self, key: str, values: Iterable[str], expires_in: float | None = None) -> None:
        entry = self._lookup(key)
        if entry is None:
            self._cache[key] = _Entry(frozenset(values), self._deadline(expires_in))
        else:
            self._cache[key] = _Entry(entry.value | frozenset(values), entry.expires_at)

    async def increment(self, key: str, amount: int = 1, expires_in: float | None = None) -> int:
        entry = self._lookup(key)
        if entry is None:
            self._cache[key] = _Entry(amount, self._deadline(expires_in))
            return amount
        value = int(entry.value) + amount
        self._cache[key] = _Entry(value, entry.expires_at)
        return value

    def __len__(self) -> int:
        return len(self._cache)
