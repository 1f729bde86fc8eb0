from dishka import AsyncContainer, make_async_container

from searchrepo.config import Config
from searchrepo.infrastructure.cache.di import CacheProvider
from searchrepo.infrastructure.elastic.di import ElasticProvider
from searchrepo.infrastructure.index.di import IndexProvider
from searchrepo.infrastructure.repository.di import RepositoryProvider
from searchrepo.infrastructure.shared.di import SharedProvider


def create_container(config: Config | None = None) -> AsyncContainer:
    config = config or Config()

    return make_async_container(
        SharedProvider(),
        ElasticProvider(),
        CacheProvider(),
        IndexProvider(),
        RepositoryProvider(),
        context={Config: config},
    )
