"""RepositoryQuery - what to find, independent of how results are paged or cached."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from typing_extensions import Self

from searchrepo.domain.query.model.options import OptionsBase


class SoftDeleteMode(StrEnum):
    ACTIVE_ONLY = "active_only"
    DELETED_ONLY = "deleted_only"
    ALL = "all"


class ConditionOperator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    HAS_VALUE = "has_value"
    IS_EMPTY = "is_empty"


@dataclass(frozen=True)
class SortKey:
    """One ordering key.

    `field` is the stored field name. `getter` reads the same value from a
    result document, and `attribute` is a dotted attribute path on it; both
    are optional and only used to continue search-after paging.
    """

    field: str
    descending: bool = False
    getter: Callable[[Any], Any] | None = None
    attribute: str | None = None


@dataclass(frozen=True)
class FieldCondition:
    field: str
    operator: ConditionOperator
    values: tuple[Any, ...] = ()


@dataclass(frozen=True)
class DateRange:
    start: datetime | None
    end: datetime | None
    field: str | None = None  # None means the index's partition field


class RepositoryQuery(OptionsBase):
    """Mutable builder; treated as read-only once handed to a repository."""

    def __init__(self, document_type: type | None = None) -> None:
        super().__init__()
        self.document_type = document_type

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def ids(self, *ids: str) -> Self:
        return self.append_option("ids", *ids)

    def get_ids(self) -> list[str]:
        return self.get_option("ids", [])

    def exclude_ids(self, *ids: str) -> Self:
        return self.append_option("excluded_ids", *ids)

    def get_excluded_ids(self) -> list[str]:
        return self.get_option("excluded_ids", [])

    def only_ids(self, value: bool = True) -> Self:
        """Return hits without document sources."""
        return self.set_option("only_ids", value)

    def should_only_have_ids(self) -> bool:
        return self.get_option("only_ids", False)

    # -------------------------------------------------------------------------
    # Field selection
    # -------------------------------------------------------------------------

    def include(self, *fields: str) -> Self:
        return self.append_option("includes", *fields)

    def get_includes(self) -> list[str]:
        return self.get_option("includes", [])

    def exclude(self, *fields: str) -> Self:
        return self.append_option("excludes", *fields)

    def get_excludes(self) -> list[str]:
        return self.get_option("excludes", [])

    # -------------------------------------------------------------------------
    # Sorting
    # -------------------------------------------------------------------------

    def sort(
        self,
        field: str,
        *,
        descending: bool = False,
        getter: Callable[[Any], Any] | None = None,
        attribute: str | None = None,
    ) -> Self:
        return self.append_option("sorts", SortKey(field, descending, getter, attribute))

    def sort_descending(self, field: str, **kwargs: Any) -> Self:
        return self.sort(field, descending=True, **kwargs)

    def get_sorts(self) -> list[SortKey]:
        return self.get_option("sorts", [])

    def sort_expression(self, expression: str | None) -> Self:
        """Space-separated fields, each optionally prefixed with - (descending) or +."""
        return self.set_option("sort_expression", expression) if expression else self

    def get_sort_expression(self) -> str | None:
        return self.get_option("sort_expression")

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def filter_expression(self, expression: str | None) -> Self:
        """Non-scoring filter in query-string syntax."""
        return self.set_option("filter_expression", expression) if expression else self

    def get_filter_expression(self) -> str | None:
        return self.get_option("filter_expression")

    def search_expression(self, expression: str | None) -> Self:
        """Scored free-text criteria in query-string syntax."""
        return self.set_option("search_expression", expression) if expression else self

    def get_search_expression(self) -> str | None:
        return self.get_option("search_expression")

    def aggregations_expression(self, expression: str | None) -> Self:
        """Space-separated `op:field` terms, e.g. `terms:status avg:age date:created~week`."""
        return self.set_option("aggregations_expression", expression) if expression else self

    def get_aggregations_expression(self) -> str | None:
        return self.get_option("aggregations_expression")

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def field_equals(self, field: str, *values: Any) -> Self:
        return self.append_option(
            "field_conditions", FieldCondition(field, ConditionOperator.EQUALS, values)
        )

    def field_not_equals(self, field: str, *values: Any) -> Self:
        return self.append_option(
            "field_conditions", FieldCondition(field, ConditionOperator.NOT_EQUALS, values)
        )

    def field_has_value(self, field: str) -> Self:
        return self.append_option(
            "field_conditions", FieldCondition(field, ConditionOperator.HAS_VALUE)
        )

    def field_empty(self, field: str) -> Self:
        return self.append_option("field_conditions", FieldCondition(field, ConditionOperator.IS_EMPTY))

    def get_field_conditions(self) -> list[FieldCondition]:
        return self.get_option("field_conditions", [])

    def date_range(
        self, start: datetime | None, end: datetime | None, field: str | None = None
    ) -> Self:
        return self.set_option("date_range", DateRange(start, end, field))

    def get_date_range(self) -> DateRange | None:
        return self.get_option("date_range")

    def elastic_filter(self, clause: dict[str, Any]) -> Self:
        """Raw engine filter clause, ANDed with everything else."""
        return self.append_option("elastic_filters", clause)

    def get_elastic_filters(self) -> list[dict[str, Any]]:
        return self.get_option("elastic_filters", [])

    def soft_delete_mode(self, mode: SoftDeleteMode) -> Self:
        return self.set_option("soft_delete_mode", mode)

    def get_soft_delete_mode(self) -> SoftDeleteMode:
        return self.get_option("soft_delete_mode", SoftDeleteMode.ACTIVE_ONLY)


def sort_keys_from_expression(expression: str | None) -> list[SortKey]:
    keys = []
    for token in (expression or "").split():
        if token.startswith("-"):
            keys.append(SortKey(token[1:], descending=True))
        else:
            keys.append(SortKey(token.lstrip("+")))
    return [key for key in keys if key.field]


def all_sort_keys(query: RepositoryQuery) -> list[SortKey]:
    """Explicit sort keys followed by those from the sort expression."""
    return [*query.get_sorts(), *sort_keys_from_expression(query.get_sort_expression())]


def unique(values: Iterable[str]) -> list[str]:
    """Distinct non-empty values, first occurrence order."""
    return list(dict.fromkeys(v for v in values if v))
