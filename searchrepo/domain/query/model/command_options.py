"""CommandOptions - how a query is executed: paging, caching and snapshot state."""

from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from searchrepo.domain.query.model.options import OptionsBase

if TYPE_CHECKING:
    from searchrepo.domain.index.model.descriptor import IndexDescriptor

DEFAULT_LIMIT = 10
MAX_LIMIT = 10000
DEFAULT_SNAPSHOT_LIFETIME = "1m"


class CommandOptions(OptionsBase):
    # -------------------------------------------------------------------------
    # Paging
    # -------------------------------------------------------------------------

    def page_number(self, page: int | None) -> Self:
        if page is None:
            return self.remove_option("page")
        return self.set_option("page", max(page, 1))

    def has_page_number(self) -> bool:
        return self.has_option("page")

    def get_page(self) -> int:
        return self.get_option("page", 1)

    def page_limit(self, limit: int | None) -> Self:
        if limit is None:
            return self.remove_option("limit")
        return self.set_option("limit", limit)

    def has_page_limit(self) -> bool:
        return self.has_option("limit")

    def get_limit(self) -> int:
        limit = self.get_option("limit", self.get_option("default_limit", DEFAULT_LIMIT))
        return max(0, min(limit, self.get_option("max_limit", MAX_LIMIT)))

    def search_after_paging(self, enabled: bool = True) -> Self:
        return self.set_option("search_after_paging", enabled)

    def should_use_search_after_paging(self) -> bool:
        return self.get_option("search_after_paging", False)

    def search_after(self, *values: Any) -> Self:
        """Lower bound for the next page: the previous page's last sort values."""
        self.search_after_paging()
        return self.set_option("search_after", list(values))

    def has_search_after(self) -> bool:
        return bool(self.get_option("search_after"))

    def get_search_after(self) -> list[Any]:
        return self.get_option("search_after", [])

    # -------------------------------------------------------------------------
    # Snapshot (scroll) paging
    # -------------------------------------------------------------------------

    def snapshot_paging(self, lifetime: str | None = None) -> Self:
        self.set_option("snapshot_paging", True)
        if lifetime:
            self.set_option("snapshot_lifetime", lifetime)
        return self

    def should_use_snapshot_paging(self) -> bool:
        return self.get_option("snapshot_paging", False)

    def snapshot_scroll_id(self, scroll_id: str) -> Self:
        self.set_option("snapshot_paging", True)
        return self.set_option("snapshot_scroll_id", scroll_id)

    def has_snapshot_scroll_id(self) -> bool:
        return bool(self.get_option("snapshot_scroll_id"))

    def get_snapshot_scroll_id(self) -> str | None:
        return self.get_option("snapshot_scroll_id")

    def get_snapshot_lifetime(self) -> str:
        return self.get_option(
            "snapshot_lifetime", self.get_option("default_snapshot_lifetime", DEFAULT_SNAPSHOT_LIFETIME)
        )

    # -------------------------------------------------------------------------
    # Caching
    # -------------------------------------------------------------------------

    def cache_key(self, key: str | None) -> Self:
        if not key:
            return self.remove_option("cache_key")
        return self.set_option("cache_key", key)

    def has_cache_key(self) -> bool:
        return bool(self.get_option("cache_key"))

    def get_cache_key(self) -> str | None:
        return self.get_option("cache_key")

    def cache(self, key: str | None = None, expires_in: float | None = None) -> Self:
        """Enable read and write caching, optionally under a query cache key."""
        self.set_option("use_cache", True)
        if key:
            self.cache_key(key)
        if expires_in is not None:
            self.expires_in(expires_in)
        return self

    def use_cache(self, enabled: bool = True) -> Self:
        return self.set_option("use_cache", enabled)

    def should_use_cache(self, default: bool = False) -> bool:
        """Whether results may be written to the cache.

        Defaults to True once a cache key is set.
        """
        return self.get_option("use_cache", self.has_cache_key() or default)

    def read_cache(self, enabled: bool = True) -> Self:
        return self.set_option("read_cache", enabled)

    def should_read_cache(self, default: bool = False) -> bool:
        """Whether cached results may be returned. Defaults to should_use_cache."""
        return self.get_option("read_cache", self.should_use_cache(default))

    def expires_in(self, seconds: float) -> Self:
        return self.set_option("expires_in", seconds)

    def get_expires_in(self) -> float | None:
        return self.get_option("expires_in", self.get_option("default_expires_in"))

    # -------------------------------------------------------------------------
    # Target index
    # -------------------------------------------------------------------------

    def index(self, descriptor: "IndexDescriptor") -> Self:
        return self.set_option("index", descriptor)

    def get_index(self) -> "IndexDescriptor | None":
        return self.get_option("index")
