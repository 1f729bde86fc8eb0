"""Alias resolution - maps logical index descriptors to physical index names."""

from datetime import datetime

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.domain.shared.service import Service


class AliasResolver(Service):
    """Resolves where reads for a descriptor should go."""

    store: SearchStore

    async def resolve(self, alias: str) -> list[str]:
        """Physical indices an alias currently points at (empty if unbound)."""
        return await self.store.get_alias(alias)

    async def current_indexes(self, descriptor: IndexDescriptor) -> list[str]:
        return await self.resolve(descriptor.alias_name)

    def indexes_for_query(
        self,
        descriptor: IndexDescriptor,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[str]:
        """Search targets for a query, narrowed to period indices when a date range is known."""
        if descriptor.time_partitioned and (start or end):
            return descriptor.indexes_for_range(start, end)
        return [descriptor.alias_name]

    def index_for_document(self, descriptor: IndexDescriptor, id_date: datetime | None) -> str | None:
        """Index a single document can be fetched from directly.

        Returns None for time-partitioned descriptors when the document's date
        is unknown; such documents can only be found by querying the alias.
        """
        if not descriptor.time_partitioned:
            return descriptor.alias_name
        if id_date is None:
            return None
        return descriptor.index_for_date(id_date)
