from typing import AsyncIterable

from dishka import Provider, Scope, from_context, provide
from redis.asyncio import Redis

from searchrepo.config import Config


class SharedProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)

    @provide(scope=Scope.APP)
    async def get_redis(self, config: Config) -> AsyncIterable[Redis]:
        # Connections are opened on first command, so an unused client costs nothing
        client = Redis.from_url(config.redis.url, decode_responses=True)
        yield client
        await client.aclose()
