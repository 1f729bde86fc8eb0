"""Unit tests for IndexConfigurationService."""

import pytest

from searchrepo.domain.index.model.descriptor import UNKNOWN_VERSION, IndexDescriptor
from searchrepo.domain.index.model.work_item import ReindexWorkItem
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.index.service.configuration import IndexConfigurationService
from searchrepo.domain.index.service.reindex import ReindexOrchestrator
from searchrepo.domain.shared.error import ConfigurationError, StoreError
from searchrepo.infrastructure.cache.memory import InMemoryCacheClient
from searchrepo.infrastructure.lock.memory import InMemoryLockProvider
from searchrepo.infrastructure.lock.throttling import ThrottlingLockProvider
from searchrepo.infrastructure.queue.memory import InMemoryWorkQueue
from tests.support.fakes import FakeSearchStore

ORDERS_V1 = IndexDescriptor(name="orders", version=1, mappings={"properties": {"id": {"type": "keyword"}}})
ORDERS_V2 = IndexDescriptor(name="orders", version=2)
EVENTS = IndexDescriptor(name="events", time_partitioned=True)


class RejectingStore(FakeSearchStore):
    """Store whose index creation is refused by the cluster."""

    async def create_index(self, name, body):
        raise StoreError("mapper_parsing_exception", status=400, detail={"type": "mapper_parsing_exception"})


@pytest.fixture
def store() -> FakeSearchStore:
    return FakeSearchStore()


@pytest.fixture
def queue() -> InMemoryWorkQueue:
    return InMemoryWorkQueue()


def make_service(store: FakeSearchStore, queue: InMemoryWorkQueue) -> IndexConfigurationService:
    return IndexConfigurationService(
        store=store,
        aliases=AliasResolver(store=store),
        reindex=ReindexOrchestrator(
            queue=queue,
            migration_locks=InMemoryLockProvider(),
            throttle=ThrottlingLockProvider(InMemoryCacheClient(), period=3600),
        ),
    )


@pytest.fixture
def service(store, queue) -> IndexConfigurationService:
    return make_service(store, queue)


class TestConfigureIndex:
    @pytest.mark.asyncio
    async def test_creates_index_and_binds_alias(self, service, store, queue):
        # Act
        scheduled = await service.configure_index(ORDERS_V1)

        # Assert
        assert not scheduled
        assert "orders-v1" in store.indices
        assert store.aliases["orders"] == {"orders-v1"}
        create = store.calls_to("create_index")[0]
        assert create["body"] == {"mappings": {"properties": {"id": {"type": "keyword"}}}}
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_is_idempotent(self, service, store):
        await service.configure_index(ORDERS_V1)
        await service.configure_index(ORDERS_V1)

        assert len(store.calls_to("create_index")) == 1
        assert len(store.calls_to("add_aliases")) == 1

    @pytest.mark.asyncio
    async def test_version_drift_enqueues_reindex_and_keeps_alias(self, service, store, queue):
        # Arrange
        await service.configure_index(ORDERS_V1)

        # Act
        scheduled = await service.configure_index(ORDERS_V2)

        # Assert
        assert scheduled
        assert "orders-v2" in store.indices
        assert store.aliases["orders"] == {"orders-v1"}
        assert queue.items == [
            ReindexWorkItem(old_index="orders-v1", new_index="orders-v2", alias="orders")
        ]

    @pytest.mark.asyncio
    async def test_alias_ahead_of_descriptor_is_left_alone(self, service, store, queue):
        store.indices["orders-v3"] = {}
        store.aliases["orders"] = {"orders-v3"}

        scheduled = await service.configure_index(ORDERS_V2)

        assert not scheduled
        assert store.aliases["orders"] == {"orders-v3"}
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_store_rejection_becomes_configuration_error(self, queue):
        service = make_service(RejectingStore(), queue)

        with pytest.raises(ConfigurationError) as exc_info:
            await service.configure_index(ORDERS_V1)

        assert "orders-v1" in exc_info.value.message
        assert exc_info.value.detail == {"type": "mapper_parsing_exception"}

    @pytest.mark.asyncio
    async def test_configure_indexes_reports_scheduled_aliases(self, service, store):
        store.indices["orders-v1"] = {}
        store.aliases["orders"] = {"orders-v1"}

        scheduled = await service.configure_indexes([ORDERS_V2, EVENTS])

        assert scheduled == ["orders"]


class TestTimePartitionedIndex:
    @pytest.mark.asyncio
    async def test_creates_template_without_indices(self, service, store):
        await service.configure_index(EVENTS)

        assert store.templates["events-v1"]["index_patterns"] == ["events-v1-*"]
        assert store.calls_to("create_index") == []
        assert "events" not in store.aliases

    @pytest.mark.asyncio
    async def test_template_is_not_rewritten(self, service, store):
        await service.configure_index(EVENTS)
        await service.configure_index(EVENTS)

        assert len(store.calls_to("put_template")) == 1

    @pytest.mark.asyncio
    async def test_adopts_existing_period_indices(self, service, store):
        # Arrange
        store.indices["events-v1-2024.01"] = {}
        store.indices["events-v1-2024.02"] = {}
        store.indices["events-v10-2024.02"] = {}

        # Act
        await service.configure_index(EVENTS)

        # Assert
        assert store.aliases["events"] == {"events-v1-2024.01", "events-v1-2024.02"}


class TestAliasVersion:
    @pytest.mark.asyncio
    async def test_unbound_alias_has_unknown_version(self, service):
        assert await service.get_alias_version("orders") == UNKNOWN_VERSION

    @pytest.mark.asyncio
    async def test_reads_version_of_bound_index(self, service, store):
        store.indices["events-v4-2024.01"] = {}
        store.aliases["events"] = {"events-v4-2024.01"}

        assert await service.get_alias_version("events") == 4


class TestDeleteIndexes:
    @pytest.mark.asyncio
    async def test_deletes_period_indices_and_template(self, service, store):
        # Arrange
        await service.configure_index(EVENTS)
        store.indices["events-v1-2024.01"] = {}

        # Act
        await service.delete_indexes([EVENTS])

        # Assert
        assert "events-v1-2024.01" not in store.indices
        assert "events-v1" not in store.templates

    @pytest.mark.asyncio
    async def test_missing_index_is_not_an_error(self, service, store):
        await service.delete_indexes([ORDERS_V1])

        assert store.calls_to("delete_index") == ["orders-v1"]
