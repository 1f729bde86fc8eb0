"""Unit tests for the query builder chain."""

from datetime import datetime, timezone

import pytest

from searchrepo.domain.index.model.descriptor import IndexDescriptor
from searchrepo.domain.query.builder.chain import QueryBuilderChain
from searchrepo.domain.query.builder.visitor import ExpressionLowering
from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.expression import BoolOperator, GroupNode, TermNode
from searchrepo.domain.query.model.query import RepositoryQuery, SoftDeleteMode
from searchrepo.domain.shared.error import QueryValidationError, ValidationError
from searchrepo.domain.shared.model.capability import DocumentCapabilities
from searchrepo.infrastructure.expression.lucene import LuceneExpressionParser
from tests.support.documents import EMPLOYEE_CAPABILITIES, LOG_EVENTS, Employee


@pytest.fixture
def chain() -> QueryBuilderChain:
    return QueryBuilderChain.default(LuceneExpressionParser())


def build(chain, query=None, options=None, capabilities=EMPLOYEE_CAPABILITIES):
    return chain.build_search(query or RepositoryQuery(Employee), options or CommandOptions(), capabilities)


class TestFilters:
    def test_empty_query_matches_active_documents(self, chain):
        body = build(chain)

        assert body["query"]["bool"]["must"] == [{"match_all": {}}]
        assert body["query"]["bool"]["filter"] == [{"bool": {"must_not": [{"term": {"isDeleted": True}}]}}]
        assert body["size"] == 10
        assert body["version"] is True

    def test_soft_delete_modes(self, chain):
        deleted = build(chain, RepositoryQuery().soft_delete_mode(SoftDeleteMode.DELETED_ONLY))
        everything = build(chain, RepositoryQuery().soft_delete_mode(SoftDeleteMode.ALL))

        assert deleted["query"]["bool"]["filter"] == [{"term": {"isDeleted": True}}]
        assert everything["query"]["bool"]["filter"] == []

    def test_ids_are_deduplicated(self, chain):
        query = RepositoryQuery().ids("a", "b", "a").exclude_ids("c").soft_delete_mode(SoftDeleteMode.ALL)

        filters = build(chain, query)["query"]["bool"]["filter"]

        assert filters == [
            {"ids": {"values": ["a", "b"]}},
            {"bool": {"must_not": [{"ids": {"values": ["c"]}}]}},
        ]

    @pytest.mark.parametrize(
        ("configure", "expected"),
        [
            (lambda q: q.field_equals("status", "active"), {"term": {"status": "active"}}),
            (lambda q: q.field_equals("status", "a", "b"), {"terms": {"status": ["a", "b"]}}),
            (
                lambda q: q.field_not_equals("status", "a"),
                {"bool": {"must_not": [{"term": {"status": "a"}}]}},
            ),
            (lambda q: q.field_equals("status", None), {"bool": {"must_not": [{"exists": {"field": "status"}}]}}),
            (lambda q: q.field_not_equals("status", None), {"exists": {"field": "status"}}),
            (lambda q: q.field_has_value("status"), {"exists": {"field": "status"}}),
        ],
    )
    def test_field_conditions(self, chain, configure, expected):
        query = configure(RepositoryQuery().soft_delete_mode(SoftDeleteMode.ALL))

        assert build(chain, query)["query"]["bool"]["filter"] == [expected]

    def test_date_range_uses_partition_field(self, chain):
        # Arrange
        query = RepositoryQuery().date_range(datetime(2024, 1, 1, tzinfo=timezone.utc), None)
        options = CommandOptions().index(LOG_EVENTS)
        capabilities = DocumentCapabilities(document_type=Employee)

        # Act
        filters = build(chain, query, options, capabilities)["query"]["bool"]["filter"]

        # Assert
        assert filters == [{"range": {"created": {"gte": "2024-01-01T00:00:00+00:00"}}}]

    def test_date_range_without_field_is_rejected(self, chain):
        query = RepositoryQuery().date_range(datetime(2024, 1, 1), None)
        options = CommandOptions().index(IndexDescriptor(name="employees"))

        with pytest.raises(ValidationError):
            build(chain, query, options, DocumentCapabilities(document_type=Employee))

    def test_raw_filters_are_anded(self, chain):
        query = RepositoryQuery().elastic_filter({"term": {"team": "core"}}).soft_delete_mode(SoftDeleteMode.ALL)

        assert build(chain, query)["query"]["bool"]["filter"] == [{"term": {"team": "core"}}]


class TestExpressions:
    def test_filter_expression_never_scores(self, chain):
        query = RepositoryQuery().filter_expression("name:ada age:>=30").soft_delete_mode(SoftDeleteMode.ALL)

        body = build(chain, query)

        assert body["query"]["bool"]["must"] == [{"match_all": {}}]
        assert body["query"]["bool"]["filter"] == [
            {
                "bool": {
                    "filter": [
                        {"match": {"name": {"query": "ada", "operator": "and"}}},
                        {"range": {"age": {"gte": "30"}}},
                    ]
                }
            }
        ]

    def test_search_expression_scores_with_default_operator(self, chain):
        query = RepositoryQuery().search_expression("ada lovelace")

        must = build(chain, query)["query"]["bool"]["must"]

        assert must == [
            {
                "bool": {
                    "should": [
                        {"multi_match": {"query": "ada", "fields": ["*"]}},
                        {"multi_match": {"query": "lovelace", "fields": ["*"]}},
                    ],
                    "minimum_should_match": 1,
                }
            }
        ]

    def test_invalid_expression_is_rejected(self, chain):
        with pytest.raises(QueryValidationError):
            build(chain, RepositoryQuery().filter_expression("name:(ada"))

    def test_missing_parser_rejects_expressions(self):
        chain = QueryBuilderChain.default(None)

        with pytest.raises(QueryValidationError):
            build(chain, RepositoryQuery().search_expression("ada"))


class TestExpressionLowering:
    def test_field_group_applies_to_children(self):
        node = GroupNode((TermNode("a"), TermNode("b*")), BoolOperator.OR, field="name")

        clause = ExpressionLowering(scoring=True).lower(node)

        assert clause == {
            "bool": {
                "should": [{"match": {"name": "a"}}, {"wildcard": {"name": {"value": "b*"}}}],
                "minimum_should_match": 1,
            }
        }

    def test_phrase_uses_match_phrase(self):
        clause = ExpressionLowering(scoring=True, default_field="bio").lower(TermNode("rust belt", phrase=True))

        assert clause == {"match_phrase": {"bio": "rust belt"}}


class TestRequestShape:
    def test_sort_and_source_selection(self, chain):
        query = RepositoryQuery().sort_descending("age").include("name", "age").exclude("bio")

        body = build(chain, query)

        assert body["sort"] == [{"age": {"order": "desc"}}]
        assert body["_source"] == {"includes": ["name", "age"], "excludes": ["bio"]}

    def test_only_ids_drops_source(self, chain):
        assert build(chain, RepositoryQuery().only_ids())["_source"] is False

    def test_paged_request_fetches_one_extra_hit(self, chain):
        body = build(chain, options=CommandOptions().page_number(3).page_limit(20))

        assert body["size"] == 21
        assert body["from"] == 40

    def test_snapshot_request_fetches_exactly_the_limit(self, chain):
        body = build(chain, options=CommandOptions().snapshot_paging().page_limit(20))

        assert body["size"] == 20
        assert "from" not in body

    def test_search_after_request(self, chain):
        body = build(chain, options=CommandOptions().search_after(31, "e04").page_limit(5))

        assert body["search_after"] == [31, "e04"]
        assert body["sort"] == [{"id": {"order": "asc"}}]
        assert body["size"] == 6


class TestAggregations:
    def test_translates_each_term(self, chain):
        query = RepositoryQuery().aggregations_expression(
            "terms:team~5 avg:age date:created~week date:created~12h percentiles:age~50,99 tophits:created"
        )

        aggs = build(chain, query)["aggs"]

        assert aggs["terms_team"] == {"terms": {"field": "team", "size": 5}}
        assert aggs["avg_age"] == {"avg": {"field": "age"}}
        assert aggs["date_created"] == {"date_histogram": {"field": "created", "fixed_interval": "12h"}}
        assert aggs["percentiles_age"] == {"percentiles": {"field": "age", "percents": [50.0, 99.0]}}
        assert aggs["tophits_created"] == {"top_hits": {"size": 1, "sort": [{"created": {"order": "desc"}}]}}

    @pytest.mark.parametrize("expression", ["median:age", "terms:team~many", "date:created~fortnight", "age"])
    def test_rejects_invalid_terms(self, chain, expression):
        with pytest.raises(QueryValidationError):
            build(chain, RepositoryQuery().aggregations_expression(expression))
