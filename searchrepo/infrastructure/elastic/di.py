from typing import AsyncIterable

from dishka import Provider, Scope, provide
from elasticsearch import AsyncElasticsearch

from searchrepo.config import Config
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.infrastructure.elastic.store import ElasticsearchStore


class ElasticProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_client(self, config: Config) -> AsyncIterable[AsyncElasticsearch]:
        es = config.elasticsearch
        client = AsyncElasticsearch(
            hosts=es.hosts,
            api_key=es.api_key,
            request_timeout=es.request_timeout,
            retry_on_timeout=True,
            max_retries=es.max_retries,
        )
        yield client
        await client.close()

    @provide(scope=Scope.APP)
    def get_store(self, client: AsyncElasticsearch) -> SearchStore:
        return ElasticsearchStore(client)
