"""Paging modes and cursor construction for find results."""

from datetime import date, datetime, timezone
from enum import Enum, StrEnum
from operator import attrgetter
from typing import Any
from uuid import UUID

from searchrepo.domain.query.builder.builders import effective_sort_keys
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.query import RepositoryQuery, SortKey
from searchrepo.domain.result.model.cursor import (
    NoCursor,
    OffsetCursor,
    PageCursor,
    SearchAfterCursor,
    SnapshotCursor,
)
from searchrepo.domain.result.model.find_result import FindHit, FindResult
from searchrepo.domain.shared.model.capability import DocumentCapabilities

_MISSING = object()


class PagingMode(StrEnum):
    SNAPSHOT = "snapshot"
    SEARCH_AFTER = "search_after"
    OFFSET = "offset"


def paging_mode(options: CommandOptions) -> PagingMode:
    if options.should_use_snapshot_paging():
        return PagingMode.SNAPSHOT
    if options.should_use_search_after_paging():
        return PagingMode.SEARCH_AFTER
    return PagingMode.OFFSET


def build_cursor(
    result: FindResult,
    query: RepositoryQuery,
    options: CommandOptions,
    capabilities: DocumentCapabilities,
) -> PageCursor:
    if not result.has_more:
        return NoCursor()

    match paging_mode(options):
        case PagingMode.SNAPSHOT:
            if not result.scroll_id:
                return NoCursor()
            return SnapshotCursor(page=result.page, scroll_id=result.scroll_id)
        case PagingMode.SEARCH_AFTER:
            if not result.hits:
                return NoCursor()
            keys = effective_sort_keys(query, options, capabilities)
            values = extract_sort_values(result.hits[-1], keys, capabilities)
            return SearchAfterCursor(page=result.page, values=tuple(values))
    return OffsetCursor(page=result.page)


def extract_sort_values(
    hit: FindHit, keys: list[SortKey], capabilities: DocumentCapabilities
) -> list[Any]:
    """Values of each sort key on the hit's document, skipping keys that cannot be read.

    Lookup order per key: declared getter, attribute path, then field name or
    alias on the result object. The identity key falls back to the hit id.
    """
    id_field = capabilities.wire_name(capabilities.id_field) if capabilities.has_identity else None
    values = []
    for key in keys:
        value = _MISSING
        if hit.document is not None:
            value = _read(hit.document, key)
        if value is _MISSING and key.field == id_field and hit.id is not None:
            value = hit.id
        if value is not _MISSING:
            values.append(_search_after_value(value))
    return values


def _read(document: Any, key: SortKey) -> Any:
    if key.getter is not None:
        return key.getter(document)

    for path in (key.attribute, _attribute_for(document, key.field), key.field):
        if not path:
            continue
        try:
            return attrgetter(path)(document)
        except AttributeError:
            continue
    return _MISSING


def _attribute_for(document: Any, field: str) -> str | None:
    fields = getattr(type(document), "model_fields", {})
    if field in fields:
        return field
    for name, info in fields.items():
        if info.alias == field:
            return name
    return None


def _search_after_value(value: Any) -> Any:
    """Engine form of a sort value: dates as epoch millis, enums and UUIDs as their value."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, date):
        return int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp() * 1000)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value
