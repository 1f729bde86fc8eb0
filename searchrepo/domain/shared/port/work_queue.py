from abc import abstractmethod
from typing import Protocol

from pydantic import BaseModel


class WorkQueue(Protocol):
    """Queue of background work items consumed by external workers."""

    @abstractmethod
    async def enqueue(self, item: BaseModel) -> str:
        """Push an item and return its queue entry id."""
        ...
