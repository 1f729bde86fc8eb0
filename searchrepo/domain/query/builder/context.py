"""QueryContext - the accumulator threaded through the query builder chain."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.expression import BoolOperator
from searchrepo.domain.query.model.query import RepositoryQuery
from searchrepo.domain.shared.model.capability import DocumentCapabilities


@dataclass(frozen=True)
class QueryContext:
    """Immutable snapshot of a search request under construction.

    Builders never mutate a context; each returns an updated copy, so a later
    builder sees exactly what earlier ones produced.
    """

    query: RepositoryQuery
    options: CommandOptions
    capabilities: DocumentCapabilities
    must: tuple[dict[str, Any], ...] = ()
    filter: tuple[dict[str, Any], ...] = ()
    search: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)
    default_field: str | None = None
    default_operator: BoolOperator = BoolOperator.OR
    use_scoring: bool = True

    def add_must(self, *clauses: dict[str, Any]) -> "QueryContext":
        return replace(self, must=(*self.must, *clauses))

    def add_filter(self, *clauses: dict[str, Any]) -> "QueryContext":
        return replace(self, filter=(*self.filter, *clauses))

    def with_search(self, parts: Mapping[str, Any]) -> "QueryContext":
        """Merge top-level request parts (sort, size, _source, aggs, ...)."""
        return replace(self, search={**self.search, **parts})

    def with_data(self, **data: Any) -> "QueryContext":
        return replace(self, data={**self.data, **data})

    def with_defaults(
        self,
        *,
        default_field: str | None = None,
        default_operator: BoolOperator | None = None,
        use_scoring: bool | None = None,
    ) -> "QueryContext":
        return replace(
            self,
            default_field=default_field if default_field is not None else self.default_field,
            default_operator=default_operator or self.default_operator,
            use_scoring=use_scoring if use_scoring is not None else self.use_scoring,
        )

    def build_query(self) -> dict[str, Any]:
        """Scored must clauses ANDed with non-scoring filter clauses."""
        return {
            "bool": {
                "must": list(self.must) or [{"match_all": {}}],
                "filter": list(self.filter),
            }
        }

    def build_request(self) -> dict[str, Any]:
        return {**self.search, "query": self.build_query()}
