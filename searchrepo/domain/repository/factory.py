from collections.abc import Callable, Mapping
from dataclasses import field
from typing import Any, TypeVar

from pydantic import BaseModel

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.index.model.registry import IndexRegistry
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.query.builder.chain import QueryBuilderChain
from searchrepo.domain.repository.read_repository import ReadOnlyRepository
from searchrepo.domain.shared.error import NotFoundError
from searchrepo.domain.shared.model.capability import DocumentCapabilities
from searchrepo.domain.shared.port.cache import CacheClient
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.domain.shared.service import Service

T = TypeVar("T", bound=BaseModel)


class RepositoryFactory(Service):
    """Builds read repositories that share one store, cache and builder chain.

    `cache_for` returns the cache client for a document type name, already
    scoped so that types never see each other's keys.
    """

    store: SearchStore
    aliases: AliasResolver
    builders: QueryBuilderChain
    registry: IndexRegistry
    cache_for: Callable[[str], CacheClient]
    cache_enabled: bool = True
    option_defaults: Mapping[str, Any] = field(default_factory=dict)

    def create(
        self,
        index: IndexDescriptor | str,
        capabilities: DocumentCapabilities[T],
    ) -> ReadOnlyRepository[T]:
        descriptor = self.registry.get(index) if isinstance(index, str) else index
        if descriptor is None:
            raise NotFoundError(f"No index configured with name '{index}'")

        return ReadOnlyRepository(
            index=descriptor,
            capabilities=capabilities,
            store=self.store,
            aliases=self.aliases,
            cache=self.cache_for(capabilities.name),
            builders=self.builders,
            cache_enabled=self.cache_enabled,
            option_defaults=dict(self.option_defaults),
        )
