from dishka import Provider, Scope, provide

from searchrepo.config import Config
from searchrepo.domain.index.model.registry import IndexRegistry
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.query.builder.chain import QueryBuilderChain
from searchrepo.domain.query.port.expression import ExpressionParser
from searchrepo.domain.repository.factory import RepositoryFactory
from searchrepo.domain.shared.port.cache import CacheClient
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.infrastructure.cache.null import NullCacheClient
from searchrepo.infrastructure.cache.scoped import ScopedCacheClient
from searchrepo.infrastructure.expression.lucene import LuceneExpressionParser


class RepositoryProvider(Provider):
    @provide(scope=Scope.APP)
    def get_parser(self) -> ExpressionParser:
        return LuceneExpressionParser()

    @provide(scope=Scope.APP)
    def get_builders(self, parser: ExpressionParser) -> QueryBuilderChain:
        return QueryBuilderChain.default(parser)

    @provide(scope=Scope.APP)
    def get_factory(
        self,
        config: Config,
        store: SearchStore,
        aliases: AliasResolver,
        builders: QueryBuilderChain,
        registry: IndexRegistry,
        cache: CacheClient,
    ) -> RepositoryFactory:
        enabled = not isinstance(cache, NullCacheClient)
        return RepositoryFactory(
            store=store,
            aliases=aliases,
            builders=builders,
            registry=registry,
            cache_for=lambda name: ScopedCacheClient(cache, name) if enabled else cache,
            cache_enabled=enabled,
            option_defaults=config.repository.option_defaults(),
        )
