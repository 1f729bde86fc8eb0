from collections.abc import Sequence
from typing import Any

from searchrepo.domain.query.builder.builders import (
    AggregationsQueryBuilder,
    DateRangeQueryBuilder,
    ElasticFilterQueryBuilder,
    ExpressionQueryBuilder,
    FieldConditionsQueryBuilder,
    FieldIncludesQueryBuilder,
    IdentityQueryBuilder,
    PagingQueryBuilder,
    QueryBuilder,
    SoftDeletesQueryBuilder,
    SortQueryBuilder,
)
from searchrepo.domain.query.builder.context import QueryContext
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.expression import BoolOperator
from searchrepo.domain.query.model.query import RepositoryQuery
from searchrepo.domain.query.port.expression import ExpressionParser
from searchrepo.domain.shared.model.capability import DocumentCapabilities


class QueryBuilderChain:
    """Runs builders in a fixed order against one context."""

    def __init__(
        self,
        builders: Sequence[QueryBuilder],
        *,
        default_field: str | None = None,
        default_operator: BoolOperator = BoolOperator.OR,
    ) -> None:
        self.builders = list(builders)
        self.default_field = default_field
        self.default_operator = default_operator

    @classmethod
    def default(cls, parser: ExpressionParser | None = None, **kwargs: Any) -> "QueryBuilderChain":
        return cls(
            [
                IdentityQueryBuilder(),
                SoftDeletesQueryBuilder(),
                FieldConditionsQueryBuilder(),
                DateRangeQueryBuilder(),
                ElasticFilterQueryBuilder(),
                ExpressionQueryBuilder(parser),
                SortQueryBuilder(),
                FieldIncludesQueryBuilder(),
                AggregationsQueryBuilder(),
                PagingQueryBuilder(),
            ],
            **kwargs,
        )

    def build(
        self,
        query: RepositoryQuery,
        options: CommandOptions,
        capabilities: DocumentCapabilities,
    ) -> QueryContext:
        ctx = QueryContext(
            query=query,
            options=options,
            capabilities=capabilities,
            default_field=self.default_field,
            default_operator=self.default_operator,
        )
        for builder in self.builders:
            ctx = builder.build(ctx)
        return ctx

    def build_search(
        self,
        query: RepositoryQuery,
        options: CommandOptions,
        capabilities: DocumentCapabilities,
    ) -> dict[str, Any]:
        """Build the complete search request body."""
        return self.build(query, options, capabilities).build_request()
