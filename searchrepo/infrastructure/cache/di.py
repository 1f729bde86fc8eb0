from dishka import Provider, Scope, provide
from redis.asyncio import Redis

from searchrepo.config import Config
from searchrepo.domain.shared.port.cache import CacheClient
from searchrepo.infrastructure.cache.memory import InMemoryCacheClient
from searchrepo.infrastructure.cache.null import NullCacheClient
from searchrepo.infrastructure.cache.redis import RedisCacheClient
from searchrepo.infrastructure.cache.scoped import ScopedCacheClient


class CacheProvider(Provider):
    @provide(scope=Scope.APP)
    def get_cache(self, config: Config, redis: Redis) -> CacheClient:
        """Shared cache client. Chosen once here, never swapped at runtime."""
        cache = config.cache
        match cache.backend:
            case "none":
                return NullCacheClient()
            case "memory":
                return InMemoryCacheClient(max_items=cache.max_items, default_expires_in=cache.default_expires_in)
            case "redis":
                return ScopedCacheClient(
                    RedisCacheClient(redis, default_expires_in=cache.default_expires_in), cache.key_prefix
                )
        raise ValueError(f"Unknown cache backend: {cache.backend}")
