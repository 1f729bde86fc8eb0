"""Unit tests for AliasResolver."""

from datetime import datetime, timezone

import pytest

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.index.service.alias import AliasResolver
from tests.support.fakes import FakeSearchStore

ORDERS = IndexDescriptor(name="orders", version=2)
EVENTS = IndexDescriptor(name="events", time_partitioned=True)


@pytest.fixture
def resolver() -> AliasResolver:
    store = FakeSearchStore()
    store.indices["orders-v2"] = {}
    store.aliases["orders"] = {"orders-v2"}
    return AliasResolver(store=store)


class TestAliasResolver:
    @pytest.mark.asyncio
    async def test_resolves_bound_alias(self, resolver: AliasResolver):
        assert await resolver.current_indexes(ORDERS) == ["orders-v2"]

    @pytest.mark.asyncio
    async def test_unbound_alias_resolves_to_nothing(self, resolver: AliasResolver):
        assert await resolver.resolve("missing") == []

    def test_queries_target_the_alias_without_a_date_range(self, resolver: AliasResolver):
        assert resolver.indexes_for_query(ORDERS) == ["orders"]
        assert resolver.indexes_for_query(EVENTS) == ["events"]

    def test_date_range_narrows_partitioned_queries(self, resolver: AliasResolver):
        indexes = resolver.indexes_for_query(
            EVENTS,
            datetime(2024, 1, 10, tzinfo=timezone.utc),
            datetime(2024, 2, 10, tzinfo=timezone.utc),
        )

        assert indexes == ["events-v1-2024.01", "events-v1-2024.02"]

    def test_document_index_needs_a_date_when_partitioned(self, resolver: AliasResolver):
        assert resolver.index_for_document(ORDERS, None) == "orders"
        assert resolver.index_for_document(EVENTS, None) is None
        assert resolver.index_for_document(EVENTS, datetime(2024, 3, 5)) == "events-v1-2024.03"
