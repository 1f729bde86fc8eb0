"""Unit tests for ReadOnlyRepository reads, caching and invalidation."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.query import RepositoryQuery, SoftDeleteMode
from searchrepo.domain.repository.read_repository import ReadOnlyRepository
from searchrepo.domain.shared.error import (
    CacheUnavailableError,
    CapabilityError,
    StoreNotFoundError,
)
from searchrepo.domain.shared.model.capability import DocumentCapabilities
from searchrepo.infrastructure.cache.null import NullCacheClient
from searchrepo.infrastructure.cache.scoped import ScopedCacheClient
from tests.support.documents import (
    EMPLOYEE_CAPABILITIES,
    EMPLOYEES,
    LOG_EVENT_CAPABILITIES,
    LOG_EVENTS,
    Employee,
    EmployeeSummary,
    LogEvent,
    log_event_id,
)

INDEX = EMPLOYEES.versioned_name


def add_employee(store, id: str, **fields) -> None:
    store.add_document(INDEX, id, {"id": id, "name": fields.pop("name", id), **fields})


class TestGetById:
    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, employee_repository, store):
        """A cached document should not hit the store again."""
        # Arrange
        add_employee(store, "e1", name="Ada")

        # Act
        first = await employee_repository.get_by_id("e1")
        second = await employee_repository.get_by_id("e1")

        # Assert
        assert first == second
        assert first.name == "Ada"
        assert len(store.calls_to("get")) == 1

    @pytest.mark.asyncio
    async def test_version_is_stamped_from_store(self, employee_repository, store):
        add_employee(store, "e1")

        employee = await employee_repository.get_by_id("e1")

        assert employee.version == 1

    @pytest.mark.asyncio
    async def test_missing_document_returns_none_and_is_not_cached(self, employee_repository, store):
        # Act
        assert await employee_repository.get_by_id("missing") is None
        add_employee(store, "missing", name="Late")
        found = await employee_repository.get_by_id("missing")

        # Assert
        assert found is not None
        assert found.name == "Late"

    @pytest.mark.asyncio
    async def test_empty_id_returns_none_without_store_call(self, employee_repository, store):
        assert await employee_repository.get_by_id("") is None
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_read_cache_disabled_goes_to_store(self, employee_repository, store):
        add_employee(store, "e1")
        await employee_repository.get_by_id("e1")

        await employee_repository.get_by_id("e1", CommandOptions().read_cache(False))

        assert len(store.calls_to("get")) == 2

    @pytest.mark.asyncio
    async def test_cache_failure_degrades_to_store(self, store, builders):
        """An unavailable cache should be logged and bypassed, not raised."""
        # Arrange
        store.indices[INDEX] = {}
        store.aliases[EMPLOYEES.alias_name] = {INDEX}
        add_employee(store, "e1", name="Ada")
        broken = AsyncMock()
        broken.get.side_effect = CacheUnavailableError("down")
        broken.set.side_effect = CacheUnavailableError("down")
        repository = ReadOnlyRepository(
            index=EMPLOYEES,
            capabilities=EMPLOYEE_CAPABILITIES,
            store=store,
            aliases=AliasResolver(store=store),
            cache=broken,
            builders=builders,
        )

        # Act
        employee = await repository.get_by_id("e1")

        # Assert
        assert employee.name == "Ada"
        broken.set.assert_awaited_once()


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_invalidate_forces_fresh_read(self, employee_repository, store):
        """After invalidation the next read must reflect the store."""
        # Arrange
        add_employee(store, "e1", name="Before")
        cached = await employee_repository.get_by_id("e1")
        add_employee(store, "e1", name="After")

        # Act
        assert (await employee_repository.get_by_id("e1")).name == "Before"
        await employee_repository.invalidate_cache(cached)
        fresh = await employee_repository.get_by_id("e1")

        # Assert
        assert fresh.name == "After"

    @pytest.mark.asyncio
    async def test_soft_deleted_documents_are_hidden_before_the_index_catches_up(
        self, employee_repository, store
    ):
        # Arrange
        add_employee(store, "e1")
        add_employee(store, "e2")

        # Act
        await employee_repository.invalidate_cache(Employee(id="e1", is_deleted=True))
        active = await employee_repository.find()
        everything = await employee_repository.find(
            RepositoryQuery(Employee).soft_delete_mode(SoftDeleteMode.ALL)
        )

        # Assert
        assert active.ids == ["e2"]
        assert sorted(everything.ids) == ["e1", "e2"]

    @pytest.mark.asyncio
    async def test_invalidating_a_query_key_is_separate_from_documents(self, employee_repository, store, cache):
        add_employee(store, "e1")
        options = CommandOptions().cache("all-employees")
        await employee_repository.find(None, options)

        await employee_repository.invalidate_cache(Employee(id="e1"))
        await employee_repository.find(None, options)

        assert len(store.calls_to("search")) == 1


class TestGetByIds:
    @pytest.mark.asyncio
    async def test_returns_documents_in_request_order_skipping_missing(self, employee_repository, store):
        for id in ("a", "b", "c"):
            add_employee(store, id)

        employees = await employee_repository.get_by_ids(["c", "missing", "a", "c"])

        assert [e.id for e in employees] == ["c", "a"]

    @pytest.mark.asyncio
    async def test_cached_documents_skip_multi_get(self, employee_repository, store):
        for id in ("a", "b"):
            add_employee(store, id)
        await employee_repository.get_by_id("a")

        await employee_repository.get_by_ids(["a", "b"])

        (requests,) = store.calls_to("mget")
        assert [r["_id"] for r in requests] == ["b"]

    @pytest.mark.asyncio
    async def test_unroutable_ids_fall_back_to_a_query(self, store, cache, builders):
        """Ids whose period index cannot be derived are found by querying the alias."""
        # Arrange
        created = datetime(2024, 3, 15, tzinfo=timezone.utc)
        period_index = LOG_EVENTS.index_for_date(created)
        store.aliases[LOG_EVENTS.alias_name] = {period_index}
        routable = [log_event_id(created, n) for n in range(998)]
        unroutable = ["legacy-1", "legacy-2"]
        for id in routable + unroutable:
            store.add_document(period_index, id, {"id": id, "message": id})

        repository = ReadOnlyRepository(
            index=LOG_EVENTS,
            capabilities=LOG_EVENT_CAPABILITIES,
            store=store,
            aliases=AliasResolver(store=store),
            cache=ScopedCacheClient(cache, "LogEvent"),
            builders=builders,
        )
        requested = unroutable[:1] + routable + unroutable[1:]

        # Act
        events = await repository.get_by_ids(requested)

        # Assert
        assert [e.id for e in events] == requested
        (mget_requests,) = store.calls_to("mget")
        assert len(mget_requests) == 998
        assert {r["_index"] for r in mget_requests} == {period_index}
        (fallback,) = store.calls_to("search")
        assert fallback["index"] == [LOG_EVENTS.alias_name]
        assert fallback["body"]["query"]["bool"]["filter"] == [{"ids": {"values": unroutable}}]

    @pytest.mark.asyncio
    async def test_second_call_is_served_entirely_from_cache(self, employee_repository, store):
        ids = [f"e{n}" for n in range(20)]
        for id in ids:
            add_employee(store, id)

        await employee_repository.get_by_ids(ids)
        again = await employee_repository.get_by_ids(ids)

        assert [e.id for e in again] == ids
        assert len(store.calls_to("mget")) == 1

    @pytest.mark.asyncio
    async def test_requires_identity(self, store, builders):
        class Anonymous(LogEvent):
            pass

        repository = ReadOnlyRepository(
            index=LOG_EVENTS,
            capabilities=DocumentCapabilities(document_type=Anonymous, id_field=None),
            store=store,
            aliases=AliasResolver(store=store),
            cache=NullCacheClient(),
            builders=builders,
            cache_enabled=False,
        )

        with pytest.raises(CapabilityError):
            await repository.get_by_ids(["x"])


class TestFind:
    @pytest.mark.asyncio
    async def test_cached_find_returns_same_page_without_store_call(self, employee_repository, store):
        # Arrange
        for n in range(5):
            add_employee(store, f"e{n}", age=20 + n)
        options = CommandOptions().cache("by-age").page_limit(3)
        query = RepositoryQuery(Employee).sort("age")

        # Act
        first = await employee_repository.find(query, options)
        second = await employee_repository.find(query, options)

        # Assert
        assert second.ids == first.ids == ["e0", "e1", "e2"]
        assert second.has_more and second.total == 5
        assert second.cursor == first.cursor
        assert len(store.calls_to("search")) == 1

    @pytest.mark.asyncio
    async def test_query_keys_are_separate_from_each_other_and_from_documents(
        self, employee_repository, store
    ):
        # Arrange
        add_employee(store, "e1", name="Ada")
        add_employee(store, "e2", name="Grace")
        query = RepositoryQuery(Employee).ids("e2")
        options = CommandOptions().cache("e1")

        # Act
        page = await employee_repository.find(query, options)
        hit = await employee_repository.find_one(query, options)
        document = await employee_repository.get_by_id("e1")

        # Assert
        assert page.ids == ["e2"]
        assert hit.id == "e2"
        assert document.name == "Ada"
        assert len(store.calls_to("search")) == 2
        assert len(store.calls_to("get")) == 1

    @pytest.mark.asyncio
    async def test_missing_index_gives_empty_result(self, employee_repository, store):
        store.search = AsyncMock(side_effect=StoreNotFoundError("no such index", status=404))

        result = await employee_repository.find()

        assert result.hits == []
        assert result.total == 0
        assert not result.has_more

    @pytest.mark.asyncio
    async def test_find_as_maps_onto_projection_type(self, employee_repository, store):
        add_employee(store, "e1", name="Ada", age=36)

        result = await employee_repository.find_as(EmployeeSummary)

        assert result.documents == [EmployeeSummary(id="e1", name="Ada")]

    @pytest.mark.asyncio
    async def test_caller_options_are_not_mutated(self, employee_repository, store):
        add_employee(store, "e1")
        options = CommandOptions().page_limit(5)
        query = RepositoryQuery(Employee)

        await employee_repository.find(query, options)

        assert "index" not in options
        assert query.get_excluded_ids() == []

    @pytest.mark.asyncio
    async def test_search_combines_system_filter_and_expressions(self, employee_repository, store):
        add_employee(store, "e1")
        system_filter = RepositoryQuery(Employee).field_equals("companyId", "c1")

        await employee_repository.search(system_filter, filter="name:ada", sort="-age")

        (call,) = store.calls_to("search")
        body = call["body"]
        assert {"term": {"companyId": "c1"}} in body["query"]["bool"]["filter"]
        assert {"match": {"name": {"query": "ada", "operator": "and"}}} in body["query"]["bool"]["filter"]
        assert body["sort"] == [{"age": {"order": "desc"}}]

    @pytest.mark.asyncio
    async def test_find_one(self, employee_repository, store):
        add_employee(store, "e1", name="Ada")
        add_employee(store, "e2", name="Grace")

        hit = await employee_repository.find_one(RepositoryQuery(Employee).ids("e2"))

        assert hit.id == "e2"
        assert hit.document.name == "Grace"
        assert store.calls_to("search")[0]["body"]["size"] == 1

    @pytest.mark.asyncio
    async def test_get_all(self, employee_repository, store):
        for n in range(3):
            add_employee(store, f"e{n}")

        result = await employee_repository.get_all()

        assert result.total == 3
        assert sorted(result.ids) == ["e0", "e1", "e2"]


class TestCountAndExists:
    @pytest.mark.asyncio
    async def test_count_by_search_applies_system_filter(self, employee_repository, store):
        add_employee(store, "e1", companyId="c1")
        add_employee(store, "e2", companyId="c2")
        system_filter = RepositoryQuery(Employee).field_equals("companyId", "c1")

        result = await employee_repository.count_by_search(system_filter, filter="name:e1")

        assert result.total == 1
        (call,) = store.calls_to("search")
        assert call["body"]["size"] == 0
        assert {"term": {"companyId": "c1"}} in call["body"]["query"]["bool"]["filter"]

    @pytest.mark.asyncio
    async def test_count_uses_zero_size_request(self, employee_repository, store):
        for n in range(4):
            add_employee(store, f"e{n}")

        result = await employee_repository.count(RepositoryQuery(Employee).ids("e1", "e2"))

        assert result.total == 2
        assert store.calls_to("search")[0]["body"]["size"] == 0

    @pytest.mark.asyncio
    async def test_count_is_cached_under_its_own_prefix(self, employee_repository, store):
        add_employee(store, "e1")
        options = CommandOptions().cache("everything")

        await employee_repository.count(None, options)
        await employee_repository.count(None, options)
        found = await employee_repository.find(None, options)

        assert found.ids == ["e1"]
        assert len(store.calls_to("search")) == 2

    @pytest.mark.asyncio
    async def test_count_all(self, employee_repository, store):
        for n in range(3):
            add_employee(store, f"e{n}")

        assert await employee_repository.count_all() == 3

    @pytest.mark.asyncio
    async def test_exists_checks_document_directly(self, employee_repository, store):
        add_employee(store, "e1")

        assert await employee_repository.exists("e1")
        assert not await employee_repository.exists("e2")
        assert not await employee_repository.exists("")
        assert len(store.calls_to("exists")) == 2

    @pytest.mark.asyncio
    async def test_exists_by_query(self, employee_repository, store):
        add_employee(store, "e1")

        assert await employee_repository.exists_by_query(RepositoryQuery(Employee).ids("e1"))
        assert not await employee_repository.exists_by_query(RepositoryQuery(Employee).ids("nope"))
