"""Redis list-backed work queue. Entries are JSON envelopes pushed with RPUSH."""

import json
import logging
import uuid

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import RedisError

from searchrepo.domain.shared.error import QueueUnavailableError

logger = logging.getLogger(__name__)


class RedisWorkQueue:
    def __init__(self, client: Redis, name: str = "work-items") -> None:
        self._client = client
        self.name = name

    @property
    def key(self) -> str:
        return f"queue:{self.name}"

    async def enqueue(self, item: BaseModel) -> str:
        entry_id = str(uuid.uuid4())
        envelope = {
            "id": entry_id,
            "type": type(item).__name__,
            "data": item.model_dump(mode="json"),
        }
        try:
            await self._client.rpush(self.key, json.dumps(envelope))
        except RedisError as e:
            raise QueueUnavailableError(f"Failed to enqueue {envelope['type']}: {e}") from e
        logger.debug("Enqueued %s on %s as %s", envelope["type"], self.key, entry_id)
        return entry_id
