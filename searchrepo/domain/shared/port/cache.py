"""CacheClient port - key/value and set storage used for query results and documents."""

import builtins
from collections.abc import Iterable, Mapping
from typing import Any, Protocol


class CacheClient(Protocol):
    """Best-effort cache.

    Values are JSON-compatible (dicts, lists, strings, numbers). A miss returns
    None, so None itself is never stored. Implementations raise
    CacheUnavailableError when the backend fails.
    """

    async def get(self, key: str) -> Any | None:
        """Get a cached value, or None on miss."""
        ...

    async def get_all(self, keys: Iterable[str]) -> dict[str, Any]:
        """Get many values. Missing keys are absent from the result."""
        ...

    async def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        """Store a value, optionally expiring after `expires_in` seconds."""
        ...

    async def set_all(self, values: Mapping[str, Any], expires_in: float | None = None) -> None:
        """Store many values atomically: all are written or none are."""
        ...

    async def remove(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        ...

    async def remove_all(self, keys: Iterable[str] | None = None) -> int:
        """Remove the given keys, or everything when keys is None."""
        ...

    async def get_set(self, key: str) -> builtins.set[str]:
        """Get members of a named set (empty if absent)."""
        ...

    async def add_to_set(self, key: str, values: Iterable[str], expires_in: float | None = None) -> None:
        """Add members to a named set."""
        ...

    async def increment(self, key: str, amount: int = 1, expires_in: float | None = None) -> int:
        """Atomically increment a counter, returning the new value.

        The expiry is only applied when the counter is created.
        """
        ...
