"""Index configuration - makes every configured index exist and be reachable by alias."""

import logging
from collections.abc import Iterable

import logfire

from searchrepo.domain.index.model.descriptor import (
    UNKNOWN_VERSION,
    IndexDescriptor,
    parse_alias_version,
)
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.index.service.reindex import ReindexOrchestrator
from searchrepo.domain.shared.error import ConfigurationError, StoreError, StoreNotFoundError
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.domain.shared.service import Service

logger = logging.getLogger(__name__)


class IndexConfigurationService(Service):
    """Creates indices, templates and aliases, and schedules reindexing on version drift.

    Not transactional: two processes configuring the same index may both try
    to create it. The store adapter absorbs "already exists" answers.
    """

    store: SearchStore
    aliases: AliasResolver
    reindex: ReindexOrchestrator

    async def configure_indexes(self, descriptors: Iterable[IndexDescriptor]) -> list[str]:
        """Configure each descriptor in order. Returns aliases with a reindex enqueued."""
        scheduled = []
        for descriptor in descriptors:
            if await self.configure_index(descriptor):
                scheduled.append(descriptor.alias_name)
        return scheduled

    async def configure_index(self, descriptor: IndexDescriptor) -> bool:
        """Ensure schema and alias exist. Returns True if a reindex was enqueued."""
        with logfire.span("ConfigureIndex", alias=descriptor.alias_name, version=descriptor.version):
            current_version = await self.get_alias_version(descriptor.alias_name)

            if descriptor.time_partitioned:
                await self._ensure_template(descriptor)
            else:
                await self._ensure_index(descriptor)

            await self._ensure_alias(descriptor)

            logger.debug(
                "Index %s configured (alias version %d, descriptor version %d)",
                descriptor.alias_name,
                current_version,
                descriptor.version,
            )
            return await self.reindex.schedule(descriptor, current_version)

    async def get_alias_version(self, alias: str) -> int:
        """Schema version of the index the alias points at, or UNKNOWN_VERSION."""
        indexes = await self.aliases.resolve(alias)
        if not indexes:
            return UNKNOWN_VERSION
        return parse_alias_version(indexes[0])

    async def delete_indexes(self, descriptors: Iterable[IndexDescriptor]) -> None:
        """Delete the current version's physical indices (and template) for each descriptor."""
        for descriptor in descriptors:
            try:
                if descriptor.time_partitioned:
                    await self.store.delete_index(descriptor.index_pattern)
                    if await self.store.template_exists(descriptor.versioned_name):
                        await self.store.delete_template(descriptor.versioned_name)
                else:
                    await self.store.delete_index(descriptor.versioned_name)
            except StoreNotFoundError:
                logger.debug("Index %s already deleted", descriptor.versioned_name)
            except StoreError as e:
                raise self._failure(f"deleting indexes for {descriptor.alias_name}", e) from e
            logger.info("Deleted indexes for %s", descriptor.versioned_name)

    async def _ensure_template(self, descriptor: IndexDescriptor) -> None:
        try:
            if await self.store.template_exists(descriptor.versioned_name):
                return
            await self.store.put_template(descriptor.versioned_name, descriptor.template_body())
        except StoreError as e:
            raise self._failure(f"creating template {descriptor.versioned_name}", e) from e
        logger.info("Created index template %s", descriptor.versioned_name)

    async def _ensure_index(self, descriptor: IndexDescriptor) -> None:
        try:
            if await self.store.index_exists(descriptor.versioned_name):
                return
            created = await self.store.create_index(descriptor.versioned_name, descriptor.index_body())
        except StoreError as e:
            raise self._failure(f"creating index {descriptor.versioned_name}", e) from e
        if created:
            logger.info("Created index %s", descriptor.versioned_name)

    async def _ensure_alias(self, descriptor: IndexDescriptor) -> None:
        alias = descriptor.alias_name
        try:
            if await self.store.alias_exists(alias):
                return

            if descriptor.time_partitioned:
                # Adopt period indices left over from an earlier run of this version
                prefix = f"{descriptor.versioned_name}-"
                indexes = [
                    name
                    for name in await self.store.list_indices(descriptor.index_pattern)
                    if name.startswith(prefix)
                ]
                if not indexes:
                    return
            else:
                indexes = [descriptor.versioned_name]

            await self.store.add_aliases(alias, indexes)
        except StoreError as e:
            raise self._failure(f"creating alias {alias}", e) from e
        logger.info("Bound alias %s to %s", alias, ", ".join(indexes))

    @staticmethod
    def _failure(action: str, error: StoreError) -> ConfigurationError:
        logger.error("Failed %s: %s", action, error.message)
        return ConfigurationError(f"Failed {action}: {error.message}", detail=error.detail)
