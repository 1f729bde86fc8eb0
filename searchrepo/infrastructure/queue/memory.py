import asyncio
import uuid

from pydantic import BaseModel


class InMemoryWorkQueue:
    """FIFO work queue held in process memory."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[str, BaseModel]] = asyncio.Queue()
        self._items: list[tuple[str, BaseModel]] = []

    async def enqueue(self, item: BaseModel) -> str:
        entry_id = str(uuid.uuid4())
        self._items.append((entry_id, item))
        await self._queue.put((entry_id, item))
        return entry_id

    async def dequeue(self) -> tuple[str, BaseModel]:
        """Wait for the next entry."""
        entry = await self._queue.get()
        self._items.remove(entry)
        return entry

    @property
    def items(self) -> list[BaseModel]:
        """Entries not yet dequeued, oldest first."""
        return [item for _, item in self._items]

    def __len__(self) -> int:
        return len(self._items)
