"""Unit tests for ElasticsearchStore against a mocked async client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from elastic_transport import ApiResponseMeta, ConnectionError, HttpHeaders, NodeConfig
from elasticsearch import ApiError, BadRequestError, NotFoundError

from searchrepo.domain.shared.error import StoreError, StoreNotFoundError, StoreUnavailableError
from searchrepo.infrastructure.elastic.store import ElasticsearchStore


def meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def not_found() -> NotFoundError:
    return NotFoundError("index_not_found_exception", meta(404), {"error": {"type": "index_not_found_exception"}})


def bad_request(error_type: str) -> BadRequestError:
    return BadRequestError(error_type, meta(400), {"error": {"type": error_type}})


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.search = AsyncMock()
    client.scroll = AsyncMock()
    client.clear_scroll = AsyncMock()
    client.get = AsyncMock()
    client.mget = AsyncMock()
    client.count = AsyncMock()
    client.indices.create = AsyncMock()
    client.indices.get = AsyncMock()
    client.indices.get_alias = AsyncMock()
    client.indices.update_aliases = AsyncMock()
    client.indices.put_index_template = AsyncMock()
    return client


@pytest.fixture
def store(client) -> ElasticsearchStore:
    return ElasticsearchStore(client)


class TestReads:
    @pytest.mark.asyncio
    async def test_search_requests_typed_aggregation_keys(self, store, client):
        client.search.return_value = {"hits": {"total": {"value": 0}, "hits": []}}

        response = await store.search(["employees"], {"size": 1}, scroll="1m")

        assert response == {"hits": {"total": {"value": 0}, "hits": []}}
        kwargs = client.search.await_args.kwargs
        assert kwargs["typed_keys"] is True
        assert kwargs["ignore_unavailable"] is True
        assert kwargs["scroll"] == "1m"

    @pytest.mark.asyncio
    async def test_search_unwraps_api_responses(self, store, client):
        client.search.return_value = MagicMock(body={"hits": {"hits": []}})

        assert await store.search(["employees"], {}) == {"hits": {"hits": []}}

    @pytest.mark.asyncio
    async def test_missing_index_is_translated(self, store, client):
        client.search.side_effect = not_found()

        with pytest.raises(StoreNotFoundError) as exc_info:
            await store.search(["missing"], {})

        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_rejected_request_keeps_status_and_detail(self, store, client):
        client.search.side_effect = bad_request("search_phase_execution_exception")

        with pytest.raises(StoreError) as exc_info:
            await store.search(["employees"], {})

        assert not isinstance(exc_info.value, StoreNotFoundError)
        assert exc_info.value.status == 400
        assert exc_info.value.detail == {"error": {"type": "search_phase_execution_exception"}}

    @pytest.mark.asyncio
    async def test_connection_failure_is_unavailable(self, store, client):
        client.count.side_effect = ConnectionError("connection refused")

        with pytest.raises(StoreUnavailableError):
            await store.count(["employees"])

    @pytest.mark.asyncio
    async def test_get_missing_document_returns_none(self, store, client):
        client.get.side_effect = not_found()

        assert await store.get("employees", "e1") is None

    @pytest.mark.asyncio
    async def test_mget_drops_per_document_errors(self, store, client):
        client.mget.return_value = {
            "docs": [
                {"_index": "employees-v1", "_id": "a", "found": True, "_source": {}},
                {"_index": "gone", "_id": "b", "error": {"type": "index_not_found_exception"}},
            ]
        }

        docs = await store.mget([{"_index": "employees", "_id": "a"}, {"_index": "gone", "_id": "b"}])

        assert [d["_id"] for d in docs] == ["a"]

    @pytest.mark.asyncio
    async def test_mget_without_docs_skips_request(self, store, client):
        assert await store.mget([]) == []
        client.mget.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_sends_only_the_query(self, store, client):
        client.count.return_value = {"count": 7}

        total = await store.count(["employees"], {"query": {"match_all": {}}, "size": 0})

        assert total == 7
        assert client.count.await_args.kwargs["query"] == {"match_all": {}}

    @pytest.mark.asyncio
    async def test_expired_scroll_clear_is_ignored(self, store, client):
        client.clear_scroll.side_effect = not_found()

        await store.clear_scroll("s1")


class TestAdministration:
    @pytest.mark.asyncio
    async def test_create_existing_index_returns_false(self, store, client):
        client.indices.create.side_effect = bad_request("resource_already_exists_exception")

        assert not await store.create_index("employees-v1", {})

    @pytest.mark.asyncio
    async def test_create_index_passes_settings_and_mappings(self, store, client):
        created = await store.create_index("employees-v1", {"settings": {"number_of_shards": 1}})

        assert created
        kwargs = client.indices.create.await_args.kwargs
        assert kwargs["settings"] == {"number_of_shards": 1}
        assert kwargs["mappings"] is None

    @pytest.mark.asyncio
    async def test_create_index_rejection_raises(self, store, client):
        client.indices.create.side_effect = bad_request("mapper_parsing_exception")

        with pytest.raises(StoreError):
            await store.create_index("employees-v1", {})

    @pytest.mark.asyncio
    async def test_alias_resolution(self, store, client):
        client.indices.get_alias.return_value = {"employees-v2": {}, "employees-v1": {}}

        assert await store.get_alias("employees") == ["employees-v1", "employees-v2"]

    @pytest.mark.asyncio
    async def test_unbound_alias_resolves_to_nothing(self, store, client):
        client.indices.get_alias.side_effect = not_found()

        assert await store.get_alias("employees") == []

    @pytest.mark.asyncio
    async def test_add_aliases_sends_one_action_per_index(self, store, client):
        await store.add_aliases("events", ["events-v1-2024.01", "events-v1-2024.02"])

        assert client.indices.update_aliases.await_args.kwargs["actions"] == [
            {"add": {"index": "events-v1-2024.01", "alias": "events"}},
            {"add": {"index": "events-v1-2024.02", "alias": "events"}},
        ]

    @pytest.mark.asyncio
    async def test_put_template(self, store, client):
        body = {"index_patterns": ["events-v1-*"], "template": {"aliases": {"events": {}}}}

        await store.put_template("events-v1", body)

        kwargs = client.indices.put_index_template.await_args.kwargs
        assert kwargs["name"] == "events-v1"
        assert kwargs["index_patterns"] == ["events-v1-*"]
        assert kwargs["template"] == {"aliases": {"events": {}}}

    @pytest.mark.asyncio
    async def test_generic_api_error_is_translated(self, store, client):
        client.indices.get.side_effect = ApiError("boom", meta(500), {"error": "boom"})

        with pytest.raises(StoreError) as exc_info:
            await store.list_indices("events-v1-*")

        assert exc_info.value.status == 500
