"""Dependency injection provider for index lifecycle services."""

from dishka import Provider, Scope, provide
from redis.asyncio import Redis

from searchrepo.config import Config
from searchrepo.domain.index.model.registry import IndexRegistry
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.index.service.configuration import IndexConfigurationService
from searchrepo.domain.index.service.reindex import ReindexOrchestrator
from searchrepo.domain.shared.port.cache import CacheClient
from searchrepo.domain.shared.port.lock import LockProvider
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.domain.shared.port.work_queue import WorkQueue
from searchrepo.infrastructure.cache.memory import InMemoryCacheClient
from searchrepo.infrastructure.cache.redis import RedisCacheClient
from searchrepo.infrastructure.cache.scoped import ScopedCacheClient
from searchrepo.infrastructure.lock.memory import InMemoryLockProvider
from searchrepo.infrastructure.lock.redis import RedisLockProvider
from searchrepo.infrastructure.lock.throttling import ThrottlingLockProvider
from searchrepo.infrastructure.queue.memory import InMemoryWorkQueue
from searchrepo.infrastructure.queue.redis import RedisWorkQueue


class IndexProvider(Provider):
    @provide(scope=Scope.APP)
    def get_registry(self, config: Config) -> IndexRegistry:
        return IndexRegistry(config.indexes)

    @provide(scope=Scope.APP)
    def get_aliases(self, store: SearchStore) -> AliasResolver:
        return AliasResolver(store=store)

    @provide(scope=Scope.APP)
    def get_locks(self, config: Config, redis: Redis) -> LockProvider:
        """Locks held by migration workers while a reindex runs."""
        if config.lock.backend == "redis":
            return RedisLockProvider(redis, ttl=config.lock.ttl)
        return InMemoryLockProvider()

    @provide(scope=Scope.APP)
    def get_queue(self, config: Config, redis: Redis) -> WorkQueue:
        if config.queue.backend == "redis":
            return RedisWorkQueue(redis, name=config.queue.name)
        return InMemoryWorkQueue()

    @provide(scope=Scope.APP)
    def get_reindex(
        self, config: Config, redis: Redis, queue: WorkQueue, locks: LockProvider
    ) -> ReindexOrchestrator:
        # The enqueue throttle counts hits where the locks live, never in the read cache
        if config.lock.backend == "redis":
            counter: CacheClient = ScopedCacheClient(RedisCacheClient(redis), config.cache.key_prefix)
        else:
            counter = InMemoryCacheClient()
        throttle = ThrottlingLockProvider(
            counter, period=config.lock.throttle_period, max_hits=config.lock.throttle_max_hits
        )
        return ReindexOrchestrator(queue=queue, migration_locks=locks, throttle=throttle)

    @provide(scope=Scope.APP)
    def get_configuration(
        self, store: SearchStore, aliases: AliasResolver, reindex: ReindexOrchestrator
    ) -> IndexConfigurationService:
        return IndexConfigurationService(store=store, aliases=aliases, reindex=reindex)
