"""Elasticsearch implementation of the SearchStore port."""

import logging
from collections.abc import Sequence
from typing import Any

from elasticsearch import AsyncElasticsearch
from elasticsearch import NotFoundError as EsNotFoundError
from elasticsearch.exceptions import ApiError, TransportError

from searchrepo.domain.shared.error import StoreError, StoreNotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _body(response: Any) -> Any:
    # 8.x clients wrap JSON bodies in ObjectApiResponse
    return getattr(response, "body", response)


def _error_type(error: ApiError) -> str | None:
    info = error.info if isinstance(error.info, dict) else {}
    detail = info.get("error")
    if isinstance(detail, dict):
        return detail.get("type")
    return None


def _translate(error: Exception, action: str) -> StoreError:
    if isinstance(error, EsNotFoundError):
        return StoreNotFoundError(f"{action}: not found", status=404, detail=error.info)
    if isinstance(error, ApiError):
        return StoreError(f"{action}: {error.message}", status=error.status_code, detail=error.info)
    return StoreUnavailableError(f"{action}: {error}")


class ElasticsearchStore:
    """SearchStore over the async Elasticsearch client.

    Owns nothing but the client reference; closing the client is the
    container's job.
    """

    def __init__(self, client: AsyncElasticsearch) -> None:
        self._client = client

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def search(
        self,
        index: Sequence[str],
        body: dict[str, Any],
        *,
        scroll: str | None = None,
        routing: str | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.search(
                index=list(index),
                body=body,
                scroll=scroll,
                routing=routing,
                typed_keys=True,
                ignore_unavailable=True,
            )
        except (ApiError, TransportError) as e:
            raise _translate(e, "Search failed") from e
        return _body(response)

    async def scroll(self, scroll_id: str, lifetime: str) -> dict[str, Any]:
        try:
            response = await self._client.scroll(scroll_id=scroll_id, scroll=lifetime, rest_total_hits_as_int=False)
        except (ApiError, TransportError) as e:
            raise _translate(e, "Scroll failed") from e
        return _body(response)

    async def clear_scroll(self, scroll_id: str) -> None:
        try:
            await self._client.clear_scroll(scroll_id=scroll_id)
        except EsNotFoundError:
            # Already expired
            return
        except (ApiError, TransportError) as e:
            raise _translate(e, "Clear scroll failed") from e

    async def get(self, index: str, id: str, *, routing: str | None = None) -> dict[str, Any] | None:
        try:
            response = await self._client.get(index=index, id=id, routing=routing)
        except EsNotFoundError:
            return None
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Get {index}/{id} failed") from e
        return _body(response)

    async def mget(self, docs: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        if not docs:
            return []
        try:
            response = await self._client.mget(docs=list(docs))
        except (ApiError, TransportError) as e:
            raise _translate(e, "Multi-get failed") from e
        # Per-document errors (missing index) come back inline
        return [doc for doc in _body(response).get("docs", []) if "error" not in doc]

    async def exists(self, index: str, id: str, *, routing: str | None = None) -> bool:
        try:
            return bool(await self._client.exists(index=index, id=id, routing=routing))
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Exists {index}/{id} failed") from e

    async def count(self, index: Sequence[str], body: dict[str, Any] | None = None) -> int:
        try:
            response = await self._client.count(
                index=list(index),
                query=(body or {}).get("query"),
                ignore_unavailable=True,
            )
        except (ApiError, TransportError) as e:
            raise _translate(e, "Count failed") from e
        return int(_body(response).get("count", 0))

    # -------------------------------------------------------------------------
    # Index administration
    # -------------------------------------------------------------------------

    async def index_exists(self, name: str) -> bool:
        try:
            return bool(await self._client.indices.exists(index=name))
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Index exists {name} failed") from e

    async def create_index(self, name: str, body: dict[str, Any]) -> bool:
        try:
            await self._client.indices.create(
                index=name,
                settings=body.get("settings"),
                mappings=body.get("mappings"),
                aliases=body.get("aliases"),
            )
        except ApiError as e:
            if _error_type(e) == "resource_already_exists_exception":
                logger.debug("Index %s already exists", name)
                return False
            raise _translate(e, f"Create index {name} failed") from e
        except TransportError as e:
            raise _translate(e, f"Create index {name} failed") from e
        return True

    async def delete_index(self, pattern: str) -> None:
        try:
            await self._client.indices.delete(index=pattern)
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Delete index {pattern} failed") from e

    async def list_indices(self, pattern: str) -> list[str]:
        try:
            response = await self._client.indices.get(index=pattern, ignore_unavailable=True, allow_no_indices=True)
        except EsNotFoundError:
            return []
        except (ApiError, TransportError) as e:
            raise _translate(e, f"List indices {pattern} failed") from e
        return sorted(_body(response).keys())

    async def template_exists(self, name: str) -> bool:
        try:
            return bool(await self._client.indices.exists_index_template(name=name))
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Template exists {name} failed") from e

    async def put_template(self, name: str, body: dict[str, Any]) -> None:
        try:
            await self._client.indices.put_index_template(
                name=name,
                index_patterns=body["index_patterns"],
                template=body.get("template"),
                priority=body.get("priority"),
            )
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Put template {name} failed") from e

    async def delete_template(self, name: str) -> None:
        try:
            await self._client.indices.delete_index_template(name=name)
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Delete template {name} failed") from e

    async def alias_exists(self, alias: str) -> bool:
        try:
            return bool(await self._client.indices.exists_alias(name=alias))
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Alias exists {alias} failed") from e

    async def get_alias(self, alias: str) -> list[str]:
        try:
            response = await self._client.indices.get_alias(name=alias)
        except EsNotFoundError:
            return []
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Get alias {alias} failed") from e
        return sorted(_body(response).keys())

    async def add_aliases(self, alias: str, indices: Sequence[str]) -> None:
        actions = [{"add": {"index": index, "alias": alias}} for index in indices]
        if not actions:
            return
        try:
            await self._client.indices.update_aliases(actions=actions)
        except (ApiError, TransportError) as e:
            raise _translate(e, f"Alias {alias} failed") from e
