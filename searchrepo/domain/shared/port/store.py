"""SearchStore port - the subset of the search engine API the repositories need.

Request and response bodies use the engine's JSON shapes. Implementations
raise StoreNotFoundError for 404-class responses on search/count/scroll,
StoreError for other rejections and StoreUnavailableError for transport
failures.
"""

from collections.abc import Sequence
from typing import Any, Protocol


class SearchStore(Protocol):
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
        """Run a search request. Aggregation names come back type-prefixed."""
        ...

    async def scroll(self, scroll_id: str, lifetime: str) -> dict[str, Any]:
        """Fetch the next page of an open scroll."""
        ...

    async def clear_scroll(self, scroll_id: str) -> None:
        """Release server-side scroll state."""
        ...

    async def get(self, index: str, id: str, *, routing: str | None = None) -> dict[str, Any] | None:
        """Fetch one document by id. Returns None when not found."""
        ...

    async def mget(self, docs: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """Fetch many documents. Each request is {"_index", "_id", "routing"?}."""
        ...

    async def exists(self, index: str, id: str, *, routing: str | None = None) -> bool:
        """Check whether a document exists."""
        ...

    async def count(self, index: Sequence[str], body: dict[str, Any] | None = None) -> int:
        """Count documents matching a query (all documents when body is None)."""
        ...

    # -------------------------------------------------------------------------
    # Index administration
    # -------------------------------------------------------------------------

    async def index_exists(self, name: str) -> bool: ...

    async def create_index(self, name: str, body: dict[str, Any]) -> bool:
        """Create an index. Returns False if it already existed."""
        ...

    async def delete_index(self, pattern: str) -> None:
        """Delete indices matching a name or wildcard pattern."""
        ...

    async def list_indices(self, pattern: str) -> list[str]:
        """List concrete index names matching a wildcard pattern."""
        ...

    async def template_exists(self, name: str) -> bool: ...

    async def put_template(self, name: str, body: dict[str, Any]) -> None: ...

    async def delete_template(self, name: str) -> None: ...

    async def alias_exists(self, alias: str) -> bool: ...

    async def get_alias(self, alias: str) -> list[str]:
        """Resolve an alias to its physical index names (empty if unbound)."""
        ...

    async def add_aliases(self, alias: str, indices: Sequence[str]) -> None:
        """Bind an alias to every given index in one request."""
        ...
