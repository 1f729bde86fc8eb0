"""Query builders - each contributes one concern to a search request."""

import re
from typing import Any, Protocol

from searchrepo.domain.query.builder.context import QueryContext
from searchrepo.domain.query.builder.visitor import ExpressionLowering
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.expression import BoolOperator
from searchrepo.domain.query.model.query import (
    ConditionOperator,
    FieldCondition,
    RepositoryQuery,
    SoftDeleteMode,
    SortKey,
    all_sort_keys,
    unique,
)
from searchrepo.domain.query.port.expression import ExpressionParser
from searchrepo.domain.shared.error import QueryValidationError, ValidationError
from searchrepo.domain.shared.model.capability import DocumentCapabilities


class QueryBuilder(Protocol):
    def build(self, ctx: QueryContext) -> QueryContext:
        """Return the context with this builder's contribution added."""
        ...


def effective_sort_keys(
    query: RepositoryQuery, options: CommandOptions, capabilities: DocumentCapabilities
) -> list[SortKey]:
    """Sort keys the request will use.

    Search-after paging needs a total order, so the identity field is
    appended as a tiebreaker when it is not already sorted on.
    """
    keys = all_sort_keys(query)
    if options.should_use_search_after_paging() and capabilities.has_identity:
        id_field = capabilities.wire_name(capabilities.id_field)
        if all(key.field != id_field for key in keys):
            keys.append(SortKey(id_field, attribute=capabilities.id_field))
    return keys


class IdentityQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        ids = unique(ctx.query.get_ids())
        if ids:
            ctx = ctx.add_filter({"ids": {"values": ids}})

        excluded = unique(ctx.query.get_excluded_ids())
        if excluded:
            ctx = ctx.add_filter({"bool": {"must_not": [{"ids": {"values": excluded}}]}})
        return ctx


class SoftDeletesQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        capabilities = ctx.capabilities
        if not capabilities.supports_soft_deletes:
            return ctx

        field = capabilities.wire_name(capabilities.soft_delete_field)
        match ctx.query.get_soft_delete_mode():
            case SoftDeleteMode.ACTIVE_ONLY:
                return ctx.add_filter({"bool": {"must_not": [{"term": {field: True}}]}})
            case SoftDeleteMode.DELETED_ONLY:
                return ctx.add_filter({"term": {field: True}})
        return ctx


class FieldConditionsQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        for condition in ctx.query.get_field_conditions():
            ctx = ctx.add_filter(self._clause(condition))
        return ctx

    @staticmethod
    def _clause(condition: FieldCondition) -> dict[str, Any]:
        field = condition.field
        match condition.operator:
            case ConditionOperator.HAS_VALUE:
                return {"exists": {"field": field}}
            case ConditionOperator.IS_EMPTY:
                return {"bool": {"must_not": [{"exists": {"field": field}}]}}

        values = [v for v in condition.values if v is not None]
        if not values:
            # Comparing against nothing means comparing against a missing value
            exists: dict[str, Any] = {"exists": {"field": field}}
            if condition.operator is ConditionOperator.EQUALS:
                return {"bool": {"must_not": [exists]}}
            return exists

        clause = {"term": {field: values[0]}} if len(values) == 1 else {"terms": {field: values}}
        if condition.operator is ConditionOperator.NOT_EQUALS:
            return {"bool": {"must_not": [clause]}}
        return clause


class DateRangeQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        date_range = ctx.query.get_date_range()
        if date_range is None or (date_range.start is None and date_range.end is None):
            return ctx

        field = date_range.field
        if field is None:
            index = ctx.options.get_index()
            capabilities = ctx.capabilities
            if index is not None and index.time_partitioned:
                field = index.partition_field
            elif capabilities.created_field:
                field = capabilities.wire_name(capabilities.created_field)
        if field is None:
            raise ValidationError("Date range requires a field", field="date_range")

        bounds: dict[str, Any] = {}
        if date_range.start is not None:
            bounds["gte"] = date_range.start.isoformat()
        if date_range.end is not None:
            bounds["lte"] = date_range.end.isoformat()
        return ctx.add_filter({"range": {field: bounds}})


class ElasticFilterQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        filters = ctx.query.get_elastic_filters()
        return ctx.add_filter(*filters) if filters else ctx


class ExpressionQueryBuilder:
    """Parses filter and search expressions and lowers them into the request.

    Filter expressions default to AND and never score; search expressions use
    the context's default operator and field.
    """

    def __init__(self, parser: ExpressionParser | None) -> None:
        self.parser = parser

    def build(self, ctx: QueryContext) -> QueryContext:
        filter_expression = ctx.query.get_filter_expression()
        if filter_expression:
            node = self._parse(filter_expression, BoolOperator.AND)
            ctx = ctx.add_filter(ExpressionLowering(scoring=False).lower(node))

        search_expression = ctx.query.get_search_expression()
        if search_expression:
            node = self._parse(search_expression, ctx.default_operator)
            lowering = ExpressionLowering(scoring=ctx.use_scoring, default_field=ctx.default_field)
            ctx = ctx.add_must(lowering.lower(node)).with_data(has_search=True)
        return ctx

    def _parse(self, expression: str, default_operator: BoolOperator):
        if self.parser is None:
            raise QueryValidationError("No expression parser is configured", expression=expression)
        return self.parser.parse(expression, default_operator)


class SortQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        keys = effective_sort_keys(ctx.query, ctx.options, ctx.capabilities)
        if not keys:
            return ctx
        sort = [{key.field: {"order": "desc" if key.descending else "asc"}} for key in keys]
        return ctx.with_search({"sort": sort})


class FieldIncludesQueryBuilder:
    def build(self, ctx: QueryContext) -> QueryContext:
        if ctx.query.should_only_have_ids():
            return ctx.with_search({"_source": False})

        source: dict[str, list[str]] = {}
        includes = unique(ctx.query.get_includes())
        excludes = unique(ctx.query.get_excludes())
        if includes:
            source["includes"] = includes
        if excludes:
            source["excludes"] = excludes
        return ctx.with_search({"_source": source}) if source else ctx


_AGGREGATION_TOKEN = re.compile(r"^(?P<op>[a-z_]+):(?P<field>[\w.@-]+)(?:~(?P<arg>[\w.,-]+))?$")
_VALUE_METRICS = {
    "min": "min",
    "max": "max",
    "avg": "avg",
    "sum": "sum",
    "cardinality": "cardinality",
    "count": "value_count",
    "stats": "stats",
    "exstats": "extended_stats",
}
_CALENDAR_INTERVALS = {"minute", "hour", "day", "week", "month", "quarter", "year"}
_FIXED_INTERVAL = re.compile(r"^\d+(ms|s|m|h|d)$")


class AggregationsQueryBuilder:
    """Translates `op:field~arg` aggregation expressions into request aggregations.

    Supported ops: min, max, avg, sum, cardinality, count, stats, exstats,
    terms (~size), missing, percentiles (~50,95,99), date (~interval) and
    tophits (~size, newest by field first). Each aggregation is named `{op}_{field}`.
    """

    def build(self, ctx: QueryContext) -> QueryContext:
        expression = ctx.query.get_aggregations_expression()
        if not expression:
            return ctx

        aggregations = dict(ctx.search.get("aggs", {}))
        for token in expression.split():
            match = _AGGREGATION_TOKEN.match(token)
            if match is None:
                raise QueryValidationError(f"Invalid aggregation '{token}'", expression=expression)
            op, field, arg = match.group("op"), match.group("field"), match.group("arg")
            aggregations[f"{op}_{field}"] = self._aggregation(op, field, arg, expression)
        return ctx.with_search({"aggs": aggregations})

    @staticmethod
    def _aggregation(op: str, field: str, arg: str | None, expression: str) -> dict[str, Any]:
        try:
            if op in _VALUE_METRICS:
                return {_VALUE_METRICS[op]: {"field": field}}
            if op == "terms":
                return {"terms": {"field": field, "size": int(arg) if arg else 10}}
            if op == "missing":
                return {"missing": {"field": field}}
            if op == "percentiles":
                body: dict[str, Any] = {"field": field}
                if arg:
                    body["percents"] = [float(p) for p in arg.split(",")]
                return {"percentiles": body}
            if op == "date":
                interval = arg or "month"
                if interval in _CALENDAR_INTERVALS:
                    return {"date_histogram": {"field": field, "calendar_interval": interval}}
                if _FIXED_INTERVAL.match(interval):
                    return {"date_histogram": {"field": field, "fixed_interval": interval}}
                raise QueryValidationError(f"Invalid date interval '{interval}'", expression=expression)
            if op == "tophits":
                return {
                    "top_hits": {"size": int(arg) if arg else 1, "sort": [{field: {"order": "desc"}}]}
                }
        except ValueError as e:
            raise QueryValidationError(f"Invalid argument for {op}:{field}: {e}", expression=expression) from e
        raise QueryValidationError(f"Unknown aggregation type '{op}'", expression=expression)


class PagingQueryBuilder:
    """Sets size/from/search_after.

    Paged requests fetch one extra hit so the repository can tell whether
    another page exists without a count.
    """

    def build(self, ctx: QueryContext) -> QueryContext:
        options = ctx.options
        limit = options.get_limit()
        parts: dict[str, Any] = {"track_total_hits": True}

        if options.should_use_snapshot_paging():
            parts["size"] = limit
        elif options.should_use_search_after_paging():
            parts["size"] = limit + 1
            if options.has_search_after():
                parts["search_after"] = options.get_search_after()
        else:
            parts["size"] = limit + 1 if options.has_page_limit() else limit
            if options.get_page() > 1:
                parts["from"] = (options.get_page() - 1) * limit

        if ctx.capabilities.has_version:
            parts["version"] = True
        return ctx.with_search(parts)
