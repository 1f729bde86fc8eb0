"""Cache-aware read repository over one aliased index.

Flow for `find`: normalize options -> pick paging mode -> cache lookup ->
build request -> execute -> map -> cache write -> attach cursor.

Snapshot (scroll) results are never read from or written to the cache: a
scroll id is single-use server state. Cache failures are logged and treated
as misses; store failures propagate, except 404s which read as "nothing".
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from dataclasses import field
from typing import Any, Generic, TypeVar

import logfire
from pydantic import BaseModel

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.query.builder.chain import QueryBuilderChain
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.query import RepositoryQuery, SoftDeleteMode, unique
from searchrepo.domain.repository.paging import PagingMode, build_cursor, paging_mode
from searchrepo.domain.result.mapper import (
    document_loader,
    map_count_result,
    map_find_result,
    map_hit,
    map_total,
)
from searchrepo.domain.result.model.cursor import next_request
from searchrepo.domain.result.model.find_result import CountResult, FindHit, FindResult
from searchrepo.domain.shared.error import (
    CacheUnavailableError,
    CapabilityError,
    StoreError,
    StoreNotFoundError,
    ValidationError,
)
from searchrepo.domain.shared.model.capability import DocumentCapabilities
from searchrepo.domain.shared.port.cache import CacheClient
from searchrepo.domain.shared.port.store import SearchStore
from searchrepo.domain.shared.service import Service

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R", bound=BaseModel)
V = TypeVar("V")

BeforeQueryHook = Callable[[RepositoryQuery, CommandOptions, type], Awaitable[None]]

DELETED_SET_KEY = "deleted"
FALLBACK_PAGE_LIMIT = 1000


class ReadOnlyRepository(Service, Generic[T]):
    """Typed read access to the documents behind one index descriptor.

    `cache` should already be scoped to the document type. When caching is
    disabled it is a no-op client and `cache_enabled` is False.
    """

    index: IndexDescriptor
    capabilities: DocumentCapabilities[T]
    store: SearchStore
    aliases: AliasResolver
    cache: CacheClient
    builders: QueryBuilderChain
    cache_enabled: bool = True
    option_defaults: Mapping[str, Any] = field(default_factory=dict)
    before_query: list[BeforeQueryHook] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Find
    # -------------------------------------------------------------------------

    async def find(
        self, query: RepositoryQuery | None = None, options: CommandOptions | None = None
    ) -> FindResult[T]:
        return await self.find_as(self.capabilities.document_type, query, options)

    async def find_as(
        self,
        result_type: type[R],
        query: RepositoryQuery | None = None,
        options: CommandOptions | None = None,
    ) -> FindResult[R]:
        """Find documents, mapping hit sources onto `result_type`."""
        query = self._configure_query(query)
        options = self._configure_options(options)
        mode = paging_mode(options)
        allow_caching = self.cache_enabled and mode is not PagingMode.SNAPSHOT

        with logfire.span("Find", index=self.index.name, paging=str(mode)):
            await self._before_query(query, options, result_type)

            cache_suffix = (
                f"{options.get_page()}:{options.get_limit()}" if options.has_page_limit() else None
            )
            if allow_caching:
                cached = await self._get_cached(options, prefix="query", suffix=cache_suffix)
                if cached is not None:
                    result = FindResult[result_type].model_validate(cached)
                    result.cursor = build_cursor(result, query, options, self.capabilities)
                    return result

            try:
                if mode is PagingMode.SNAPSHOT and options.has_snapshot_scroll_id():
                    response = await self.store.scroll(
                        options.get_snapshot_scroll_id(), options.get_snapshot_lifetime()
                    )
                else:
                    response = await self.store.search(
                        self._indexes(query),
                        self.builders.build_search(query, options, self.capabilities),
                        scroll=options.get_snapshot_lifetime() if mode is PagingMode.SNAPSHOT else None,
                    )
            except StoreNotFoundError:
                logger.debug("Index %s not found, returning empty result", self.index.alias_name)
                return FindResult[result_type]()

            load = document_loader(result_type, self.capabilities)
            raw_hit_count = len(response.get("hits", {}).get("hits", []))
            limit = options.get_limit()

            if mode is PagingMode.SNAPSHOT:
                result = map_find_result(response, result_type, load)
                result.has_more = raw_hit_count >= limit
            elif mode is PagingMode.SEARCH_AFTER or options.has_page_limit():
                result = map_find_result(response, result_type, load, limit=limit)
                result.has_more = raw_hit_count > limit
            else:
                result = map_find_result(response, result_type, load)

            result.page = options.get_page()

            if allow_caching:
                # Cursor is excluded from the dump and rebuilt on every read
                await self._set_cached(
                    options,
                    result.model_dump(mode="json", by_alias=True),
                    prefix="query",
                    suffix=cache_suffix,
                )

            result.cursor = build_cursor(result, query, options, self.capabilities)
            return result

    async def find_one(
        self, query: RepositoryQuery, options: CommandOptions | None = None
    ) -> FindHit[T] | None:
        """First matching hit, or None."""
        query = self._configure_query(query)
        options = self._configure_options(options)
        document_type = self.capabilities.document_type

        cached = await self._get_cached(options, prefix="one")
        if cached is not None:
            return FindHit[document_type].model_validate(cached)

        await self._before_query(query, options, document_type)

        body = self.builders.build_search(query, options, self.capabilities)
        body["size"] = 1
        body.pop("from", None)
        try:
            response = await self.store.search(self._indexes(query), body)
        except StoreNotFoundError:
            return None

        raw_hits = response.get("hits", {}).get("hits", [])
        if not raw_hits:
            return None

        hit = map_hit(raw_hits[0], document_type, self.capabilities.load)
        await self._set_cached(options, hit.model_dump(mode="json", by_alias=True), prefix="one")
        return hit

    async def search(
        self,
        system_filter: RepositoryQuery | None = None,
        filter: str | None = None,
        criteria: str | None = None,
        sort: str | None = None,
        aggregations: str | None = None,
        options: CommandOptions | None = None,
    ) -> FindResult[T]:
        """Find using expressions on top of a system filter (tenancy and the like)."""
        query = (
            RepositoryQuery(self.capabilities.document_type)
            .merge_from(system_filter)
            .filter_expression(filter)
            .search_expression(criteria)
            .aggregations_expression(aggregations)
            .sort_expression(sort)
        )
        return await self.find(query, options)

    async def get_all(self, options: CommandOptions | None = None) -> FindResult[T]:
        return await self.find(None, options)

    # -------------------------------------------------------------------------
    # Paging
    # -------------------------------------------------------------------------

    async def next_page(
        self,
        result: FindResult,
        query: RepositoryQuery | None = None,
        options: CommandOptions | None = None,
        result_type: type[BaseModel] | None = None,
    ) -> FindResult | None:
        """Fetch the page after `result`, or None when it was the last.

        Pass the same query and options that produced `result`.
        """
        request = next_request(
            query or RepositoryQuery(self.capabilities.document_type),
            options or CommandOptions(),
            result.cursor,
        )
        if request is None:
            return None
        return await self.find_as(
            result_type or self.capabilities.document_type, request.query, request.options
        )

    async def iter_pages(
        self,
        query: RepositoryQuery | None = None,
        options: CommandOptions | None = None,
        result_type: type[BaseModel] | None = None,
    ) -> AsyncIterator[FindResult]:
        """Yield every page until the cursor is exhausted, then release any scroll."""
        result = await self.find_as(result_type or self.capabilities.document_type, query, options)
        try:
            yield result
            while result.has_more:
                following = await self.next_page(result, query, options, result_type)
                if following is None:
                    break
                result = following
                yield result
        finally:
            if result.scroll_id:
                await self.clear_scroll(result.scroll_id)

    async def clear_scroll(self, scroll_id: str) -> None:
        try:
            await self.store.clear_scroll(scroll_id)
        except StoreError as e:
            # Scrolls expire on their own; failing to free one early is harmless
            logger.warning("Failed to clear scroll for %s: %s", self.index.name, e)

    # -------------------------------------------------------------------------
    # Count and exists
    # -------------------------------------------------------------------------

    async def count(
        self, query: RepositoryQuery | None = None, options: CommandOptions | None = None
    ) -> CountResult:
        query = self._configure_query(query)
        options = self._configure_options(options)

        cached = await self._get_cached(options, prefix="count")
        if cached is not None:
            return CountResult.model_validate(cached)

        await self._before_query(query, options, self.capabilities.document_type)

        body = self.builders.build_search(query, options, self.capabilities)
        body["size"] = 0
        for part in ("from", "search_after", "sort", "_source"):
            body.pop(part, None)
        try:
            response = await self.store.search(self._indexes(query), body)
        except StoreNotFoundError:
            return CountResult()

        result = map_count_result(response)
        await self._set_cached(options, result.model_dump(mode="json", by_alias=True), prefix="count")
        return result

    async def count_by_search(
        self,
        system_filter: RepositoryQuery | None = None,
        filter: str | None = None,
        aggregations: str | None = None,
        options: CommandOptions | None = None,
    ) -> CountResult:
        query = (
            RepositoryQuery(self.capabilities.document_type)
            .merge_from(system_filter)
            .filter_expression(filter)
            .aggregations_expression(aggregations)
        )
        return await self.count(query, options)

    async def count_all(self) -> int:
        """Number of documents in the index, ignoring soft deletes and filters."""
        try:
            return await self.store.count(self._indexes(None))
        except StoreNotFoundError:
            return 0

    async def exists(self, id: str, *, routing: str | None = None) -> bool:
        if not id:
            return False

        index = self._index_for_id(id)
        if index is not None and (not self.capabilities.has_parent or routing is not None):
            return await self.store.exists(index, id, routing=routing)
        return await self.exists_by_query(RepositoryQuery(self.capabilities.document_type).ids(id))

    async def exists_by_query(self, query: RepositoryQuery) -> bool:
        query = self._configure_query(query)
        options = self._configure_options(None)
        await self._before_query(query, options, self.capabilities.document_type)

        body = self.builders.build_search(query, options, self.capabilities)
        body.update(size=1, _source=False)
        body.pop("from", None)
        try:
            response = await self.store.search(self._indexes(query), body)
        except StoreNotFoundError:
            return False
        return map_total(response) > 0

    # -------------------------------------------------------------------------
    # Get by id
    # -------------------------------------------------------------------------

    async def get_by_id(
        self, id: str, options: CommandOptions | None = None, *, routing: str | None = None
    ) -> T | None:
        """Fetch one document, from the per-document cache when possible.

        Types needing routing the caller did not supply, or whose index cannot
        be derived from the id, are looked up with a query instead.
        """
        if not id:
            return None

        options = self._configure_options(options)
        capabilities = self.capabilities

        if self.cache_enabled and options.should_read_cache(default=True):
            cached = await self._cache_call(self.cache.get(id), None)
            if cached is not None:
                logger.debug("Cache hit: type=%s key=%s", self.index.name, id)
                return capabilities.load(cached)

        index = self._index_for_id(id)
        if index is not None and (not capabilities.has_parent or routing is not None):
            raw = await self.store.get(index, id, routing=routing)
            document = (
                capabilities.load(raw["_source"], raw.get("_version"))
                if raw and raw.get("_source") is not None
                else None
            )
        else:
            hit = await self.find_one(RepositoryQuery(capabilities.document_type).ids(id))
            document = hit.document if hit else None

        if document is not None and self.cache_enabled and options.should_use_cache(default=True):
            await self._cache_call(
                self.cache.set(id, capabilities.dump(document), options.get_expires_in()), None
            )
        return document

    async def get_by_ids(self, ids: Iterable[str], options: CommandOptions | None = None) -> list[T]:
        """Fetch many documents in request order, skipping ids that do not exist.

        Cache first, then one multi-get for every id whose index is known,
        then paged id queries for whatever routing or partitioning hid.
        Missing ids are never cached.
        """
        id_list = unique(ids)
        if not id_list:
            return []

        capabilities = self.capabilities
        if not capabilities.has_identity:
            raise CapabilityError(f"{capabilities.name} has no identity field")

        options = self._configure_options(options)
        found: dict[str, T] = {}

        if self.cache_enabled and options.should_read_cache(default=True):
            cached = await self._cache_call(self.cache.get_all(id_list), {})
            for id, value in cached.items():
                found[id] = capabilities.load(value)

        fetched: dict[str, T] = {}
        remaining = [id for id in id_list if id not in found]

        requests = []
        if not capabilities.has_parent:
            for id in remaining:
                index = self._index_for_id(id)
                if index is not None:
                    requests.append({"_index": index, "_id": id})
        if requests:
            for doc in await self.store.mget(requests):
                if doc.get("found") and doc.get("_source") is not None:
                    fetched[doc["_id"]] = capabilities.load(doc["_source"], doc.get("_version"))

        remaining = [id for id in remaining if id not in fetched]
        if remaining and (capabilities.has_parent or self.index.time_partitioned):
            logger.debug("Falling back to query for %d ids in %s", len(remaining), self.index.name)
            query = RepositoryQuery(capabilities.document_type).ids(*remaining)
            fallback_options = CommandOptions().page_limit(FALLBACK_PAGE_LIMIT)
            async for page in self.iter_pages(query, fallback_options):
                for hit in page.hits:
                    if hit.id and hit.document is not None:
                        fetched.setdefault(hit.id, hit.document)

        if fetched and self.cache_enabled and options.should_use_cache(default=True):
            await self._cache_call(
                self.cache.set_all(
                    {id: capabilities.dump(doc) for id, doc in fetched.items()},
                    options.get_expires_in(),
                ),
                None,
            )

        found.update(fetched)
        return [found[id] for id in id_list if id in found]

    # -------------------------------------------------------------------------
    # Cache invalidation
    # -------------------------------------------------------------------------

    async def invalidate_cache(self, documents: T | Iterable[T]) -> None:
        """Drop cached copies of documents; remember soft-deleted ones as deleted."""
        docs = [documents] if isinstance(documents, BaseModel) else list(documents)
        if any(doc is None for doc in docs):
            raise ValidationError("Cannot invalidate a missing document", field="documents")

        if not self.cache_enabled or not self.capabilities.has_identity:
            return

        ids = unique(self.capabilities.get_id(doc) for doc in docs)
        if ids:
            await self._cache_call(self.cache.remove_all(ids), 0)

        deleted = unique(self.capabilities.get_id(doc) for doc in docs if self.capabilities.is_deleted(doc))
        if deleted:
            await self._cache_call(self.cache.add_to_set(DELETED_SET_KEY, deleted), None)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _configure_query(self, query: RepositoryQuery | None) -> RepositoryQuery:
        query = query.clone() if query is not None else RepositoryQuery(self.capabilities.document_type)
        if self.capabilities.default_excludes and not query.get_excludes():
            query.exclude(*self.capabilities.default_excludes)
        return query

    def _configure_options(self, options: CommandOptions | None) -> CommandOptions:
        options = options.clone() if options is not None else CommandOptions()
        options.index(self.index)
        for name, value in self.option_defaults.items():
            if not options.has_option(name):
                options.set_option(name, value)
        return options

    def _indexes(self, query: RepositoryQuery | None) -> list[str]:
        date_range = query.get_date_range() if query is not None else None
        if date_range is not None and date_range.field in (None, self.index.partition_field):
            return self.aliases.indexes_for_query(self.index, date_range.start, date_range.end)
        return self.aliases.indexes_for_query(self.index)

    def _index_for_id(self, id: str) -> str | None:
        return self.aliases.index_for_document(self.index, self.capabilities.date_for_id(id))

    async def _before_query(
        self, query: RepositoryQuery, options: CommandOptions, result_type: type
    ) -> None:
        if (
            self.capabilities.supports_soft_deletes
            and self.cache_enabled
            and query.get_soft_delete_mode() is SoftDeleteMode.ACTIVE_ONLY
        ):
            deleted = await self._cache_call(self.cache.get_set(DELETED_SET_KEY), set())
            if deleted:
                query.exclude_ids(*sorted(deleted))

        for hook in self.before_query:
            await hook(query, options, result_type)

    def _cache_key(self, options: CommandOptions, prefix: str | None, suffix: str | None) -> str | None:
        key = options.get_cache_key()
        if not key:
            return None
        if prefix:
            key = f"{prefix}:{key}"
        if suffix:
            key = f"{key}:{suffix}"
        return key

    async def _get_cached(
        self, options: CommandOptions, prefix: str | None = None, suffix: str | None = None
    ) -> Any | None:
        if not self.cache_enabled or not options.should_read_cache():
            return None
        key = self._cache_key(options, prefix, suffix)
        if key is None:
            return None

        value = await self._cache_call(self.cache.get(key), None)
        logger.debug(
            "Cache %s: type=%s key=%s", "hit" if value is not None else "miss", self.index.name, key
        )
        return value

    async def _set_cached(
        self,
        options: CommandOptions,
        value: Any,
        prefix: str | None = None,
        suffix: str | None = None,
    ) -> None:
        if not self.cache_enabled or value is None or not options.should_use_cache():
            return
        key = self._cache_key(options, prefix, suffix)
        if key is None:
            return

        await self._cache_call(self.cache.set(key, value, options.get_expires_in()), None)
        logger.debug("Set cache: type=%s key=%s", self.index.name, key)

    async def _cache_call(self, call: Awaitable[V], default: V) -> V:
        try:
            return await call
        except CacheUnavailableError as e:
            logger.warning("Cache unavailable for %s, continuing uncached: %s", self.index.name, e)
            return default
