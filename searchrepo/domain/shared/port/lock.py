"""LockProvider port - process-external mutual exclusion."""

from collections.abc import Awaitable, Callable
from typing import Protocol


class LockProvider(Protocol):
    """Distributed lock capability.

    Implementations raise LockUnavailableError when the backend fails.
    """

    async def is_locked(self, key: str) -> bool:
        """Check whether a lock is currently held by anyone."""
        ...

    async def try_using(
        self,
        key: str,
        action: Callable[[], Awaitable[object]],
        timeout: float | None = None,
    ) -> bool:
        """Run `action` while holding the lock.

        Waits up to `timeout` seconds for the lock (0 means a single attempt).
        Returns False without running `action` if the lock was not acquired.
        The lock is released when `action` completes, raises or is cancelled.
        """
        ...
