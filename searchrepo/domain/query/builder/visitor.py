"""Lowers expression syntax trees into engine query clauses."""

from typing import Any

from searchrepo.domain.query.model.expression import (
    BoolOperator,
    ExistsNode,
    ExpressionNode,
    GroupNode,
    MissingNode,
    NotNode,
    RangeNode,
    TermNode,
)


class ExpressionLowering:
    """Turns an ExpressionNode into a query clause.

    With `scoring` off, conjunctions go to `filter` so they skip relevance
    scoring. Unfielded terms search `default_field`, or every field when unset.
    """

    def __init__(self, *, scoring: bool, default_field: str | None = None) -> None:
        self.scoring = scoring
        self.default_field = default_field

    def lower(self, node: ExpressionNode, field: str | None = None) -> dict[str, Any]:
        match node:
            case TermNode():
                return self._term(node, node.field or field)
            case RangeNode():
                return {"range": {node.field: self._bounds(node)}}
            case ExistsNode(field=name):
                return {"exists": {"field": name}}
            case MissingNode(field=name):
                return {"bool": {"must_not": [{"exists": {"field": name}}]}}
            case NotNode(child=child):
                return {"bool": {"must_not": [self.lower(child, field)]}}
            case GroupNode():
                return self._group(node, node.field or field)
        raise TypeError(f"Unsupported expression node: {type(node).__name__}")

    def _group(self, node: GroupNode, field: str | None) -> dict[str, Any]:
        clauses = [self.lower(child, field) for child in node.children]
        if len(clauses) == 1:
            return clauses[0]
        if node.operator is BoolOperator.OR:
            return {"bool": {"should": clauses, "minimum_should_match": 1}}
        return {"bool": {"must" if self.scoring else "filter": clauses}}

    def _term(self, node: TermNode, field: str | None) -> dict[str, Any]:
        field = field or self.default_field

        if field is None:
            if node.is_wildcard:
                return {"query_string": {"query": node.value}}
            query: dict[str, Any] = {"query": node.value, "fields": ["*"]}
            if node.phrase:
                query["type"] = "phrase"
            return {"multi_match": query}

        if node.is_wildcard:
            return {"wildcard": {field: {"value": node.value}}}
        if node.phrase:
            return {"match_phrase": {field: node.value}}
        if self.scoring:
            return {"match": {field: node.value}}
        return {"match": {field: {"query": node.value, "operator": "and"}}}

    @staticmethod
    def _bounds(node: RangeNode) -> dict[str, Any]:
        bounds: dict[str, Any] = {}
        if node.low is not None:
            bounds["gte" if node.include_low else "gt"] = node.low
        if node.high is not None:
            bounds["lte" if node.include_high else "lt"] = node.high
        return bounds
