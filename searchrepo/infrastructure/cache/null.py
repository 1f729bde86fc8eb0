import builtins
from collections.abc import Iterable, Mapping
from typing import Any


class NullCacheClient:
    """Cache that stores nothing. Selected when caching is configured off."""

    async def get(self, key: str) -> Any | None:
        return None

    async def get_all(self, keys: Iterable[str]) -> dict[str, Any]:
        return {}

    async def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        return None

    async def set_all(self, values: Mapping[str, Any], expires_in: float | None = None) -> None:
        return None

    async def remove(self, key: str) -> bool:
        return False

    async def remove_all(self, keys: Iterable[str] | None = None) -> int:
        return 0

    async def get_set(self, key: str) -> builtins.set[str]:
        return set()

    async def add_to_set(self, key: str, values: Iterable[str], expires_in: float | None = None) -> None:
        return None

    async def increment(self, key: str, amount: int = 1, expires_in: float | None = None) -> int:
        return amount
