"""Maps engine responses onto the uniform result model.

Aggregations are decoded from `typed_keys` names (`sterms#by_status`), with a
shape-based fallback for untyped names. Shapes the decoder does not recognise
become None in the result map instead of raising, so new engine aggregation
types degrade to "missing" rather than breaking callers.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel

from searchrepo.domain.result.model.aggregate import (
    Aggregate,
    AggregationMap,
    BucketAggregate,
    DateHistogramBucket,
    ExtendedStatsAggregate,
    KeyedBucket,
    ObjectValueAggregate,
    PercentileItem,
    PercentilesAggregate,
    RangeBucket,
    SingleBucketAggregate,
    StatsAggregate,
    StdDeviationBounds,
    TopHitsAggregate,
    UnknownAggregate,
    ValueAggregate,
)
from searchrepo.domain.result.model.find_result import CountResult, FindHit, FindResult
from searchrepo.domain.shared.model.capability import DocumentCapabilities

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)
DocumentLoader = Callable[[dict[str, Any], int | None], Any]

_VALUE_TYPES = {
    "min",
    "max",
    "avg",
    "sum",
    "cardinality",
    "value_count",
    "weighted_avg",
    "median_absolute_deviation",
    "simple_value",
    "derivative",
    "cumulative_sum",
    "bucket_script",
    "avg_bucket",
    "sum_bucket",
    "min_bucket",
    "max_bucket",
}
_PERCENTILE_TYPES = {
    "percentiles",
    "tdigest_percentiles",
    "hdr_percentiles",
    "percentile_ranks",
    "tdigest_percentile_ranks",
    "hdr_percentile_ranks",
    "percentiles_bucket",
}
_SINGLE_BUCKET_TYPES = {
    "filter",
    "missing",
    "nested",
    "reverse_nested",
    "global",
    "sampler",
    "diversified_sampler",
    "children",
    "parent",
}
_DATE_BUCKET_TYPES = {"date_histogram", "auto_date_histogram"}
_RANGE_BUCKET_TYPES = {"range", "date_range", "geo_distance", "ip_range"}
_KEYED_BUCKET_TYPES = {
    "sterms",
    "lterms",
    "dterms",
    "umterms",
    "sigsterms",
    "siglterms",
    "srareterms",
    "lrareterms",
    "multi_terms",
    "histogram",
    "variable_width_histogram",
    "filters",
    "adjacency_matrix",
    "composite",
    "geohash_grid",
    "geotile_grid",
    "buckets",  # Untyped bucket response
}
_BUCKET_FIELDS = {
    "key",
    "key_as_string",
    "doc_count",
    "from",
    "to",
    "from_as_string",
    "to_as_string",
    "bg_count",
    "score",
    "meta",
}


# =============================================================================
# Hits
# =============================================================================


def document_loader(result_type: type[R], capabilities: DocumentCapabilities) -> DocumentLoader:
    """Loader for hit sources; only the repository's own type gets the version stamped."""
    if result_type is capabilities.document_type:
        return capabilities.load
    return lambda source, version: result_type.model_validate(source)


def map_hit(raw: Mapping[str, Any], result_type: type[R], load: DocumentLoader) -> FindHit[R]:
    source = raw.get("_source")
    version = raw.get("_version")
    return FindHit[result_type](
        id=raw.get("_id"),
        document=load(source, version) if source is not None else None,
        score=raw.get("_score"),
        version=version,
        routing=raw.get("_routing"),
        data={"index": raw.get("_index"), "type": raw.get("_type", "_doc")},
    )


def map_total(response: Mapping[str, Any]) -> int:
    total = response.get("hits", {}).get("total")
    if isinstance(total, Mapping):
        return int(total.get("value", 0))
    return int(total or 0)


def map_find_result(
    response: Mapping[str, Any],
    result_type: type[R],
    load: DocumentLoader,
    limit: int | None = None,
) -> FindResult[R]:
    """Map a search or scroll response. `limit` trims the extra look-ahead hit."""
    raw_hits: Sequence[Mapping[str, Any]] = response.get("hits", {}).get("hits", [])
    if limit is not None:
        raw_hits = raw_hits[:limit]
    return FindResult[result_type](
        hits=[map_hit(raw, result_type, load) for raw in raw_hits],
        total=map_total(response),
        aggregations=map_aggregations(response.get("aggregations")),
        scroll_id=response.get("_scroll_id"),
    )


def map_count_result(response: Mapping[str, Any]) -> CountResult:
    return CountResult(
        total=map_total(response),
        aggregations=map_aggregations(response.get("aggregations")),
    )


# =============================================================================
# Aggregations
# =============================================================================


def map_aggregations(raw: Mapping[str, Any] | None) -> AggregationMap:
    aggregations: AggregationMap = {}
    for key, value in (raw or {}).items():
        aggregation_type, name = split_typed_key(key)
        aggregate = decode_aggregate(aggregation_type, value)
        if isinstance(aggregate, UnknownAggregate):
            logger.debug("Dropping unrecognised aggregation %s", key)
            aggregations[name] = None
        else:
            aggregations[name] = aggregate
    return aggregations


def split_typed_key(key: str) -> tuple[str | None, str]:
    """`sterms#by_status` -> ("sterms", "by_status"); untyped names give (None, name)."""
    if "#" in key:
        aggregation_type, name = key.split("#", 1)
        return aggregation_type, name
    return None, key


def decode_aggregate(aggregation_type: str | None, raw: Any) -> Aggregate | UnknownAggregate:
    """Decode one aggregation response. Total: unknown shapes give UnknownAggregate."""
    if not isinstance(raw, Mapping):
        return UnknownAggregate(raw=raw)

    if aggregation_type is None:
        aggregation_type = _infer_type(raw)

    if aggregation_type in _VALUE_TYPES:
        return _value(raw)
    if aggregation_type == "scripted_metric":
        return ObjectValueAggregate(value=raw.get("value"))
    if aggregation_type == "stats":
        return _stats(raw)
    if aggregation_type == "extended_stats":
        return _extended_stats(raw)
    if aggregation_type in _PERCENTILE_TYPES:
        return _percentiles(raw)
    if aggregation_type == "top_hits":
        return _top_hits(raw)
    if aggregation_type in _SINGLE_BUCKET_TYPES:
        return SingleBucketAggregate(
            total=raw.get("doc_count", 0), aggregations=_sub_aggregations(raw)
        )
    if aggregation_type in _DATE_BUCKET_TYPES | _RANGE_BUCKET_TYPES | _KEYED_BUCKET_TYPES:
        return _buckets(aggregation_type, raw)
    return UnknownAggregate(raw=dict(raw))


def _infer_type(raw: Mapping[str, Any]) -> str | None:
    if "buckets" in raw:
        return "buckets"
    if "hits" in raw:
        return "top_hits"
    if "values" in raw:
        return "percentiles"
    if {"count", "min", "max", "avg", "sum"} <= raw.keys():
        return "extended_stats" if "variance" in raw else "stats"
    if "doc_count" in raw:
        return "filter"
    if "value" in raw:
        return "scripted_metric" if isinstance(raw["value"], (Mapping, list)) else "simple_value"
    return None


def _value(raw: Mapping[str, Any]) -> ValueAggregate:
    data = {k: v for k, v in raw.items() if k not in ("value", "meta")}
    return ValueAggregate(value=raw.get("value"), data=data)


def _stats(raw: Mapping[str, Any]) -> StatsAggregate:
    return StatsAggregate(
        count=raw.get("count", 0),
        min=raw.get("min"),
        max=raw.get("max"),
        average=raw.get("avg"),
        sum=raw.get("sum"),
    )


def _extended_stats(raw: Mapping[str, Any]) -> ExtendedStatsAggregate:
    bounds = raw.get("std_deviation_bounds")
    return ExtendedStatsAggregate(
        count=raw.get("count", 0),
        min=raw.get("min"),
        max=raw.get("max"),
        average=raw.get("avg"),
        sum=raw.get("sum"),
        sum_of_squares=raw.get("sum_of_squares"),
        variance=raw.get("variance"),
        std_deviation=raw.get("std_deviation"),
        std_deviation_bounds=(
            StdDeviationBounds(upper=bounds.get("upper"), lower=bounds.get("lower"))
            if isinstance(bounds, Mapping)
            else None
        ),
    )


def _percentiles(raw: Mapping[str, Any]) -> PercentilesAggregate:
    values = raw.get("values") or {}
    if isinstance(values, Mapping):
        pairs = [(float(k), v) for k, v in values.items() if not k.endswith("_as_string")]
    else:
        pairs = [(float(item["key"]), item.get("value")) for item in values]
    return PercentilesAggregate(
        items=tuple(PercentileItem(percentile=p, value=v) for p, v in pairs)
    )


def _top_hits(raw: Mapping[str, Any]) -> TopHitsAggregate:
    hits = raw.get("hits") or {}
    return TopHitsAggregate(
        total=map_total({"hits": hits}),
        hits=tuple(hit.get("_source", {}) for hit in hits.get("hits", [])),
    )


def _sub_aggregations(raw: Mapping[str, Any]) -> AggregationMap:
    nested = {k: v for k, v in raw.items() if k not in _BUCKET_FIELDS and isinstance(v, Mapping)}
    return map_aggregations(nested)


def _buckets(aggregation_type: str, raw: Mapping[str, Any]) -> BucketAggregate:
    raw_buckets = raw.get("buckets") or []
    if isinstance(raw_buckets, Mapping):
        # keyed=true and filters responses
        pairs = list(raw_buckets.items())
    else:
        pairs = [(None, bucket) for bucket in raw_buckets]

    return BucketAggregate(
        items=tuple(_bucket(aggregation_type, key, bucket) for key, bucket in pairs),
        doc_count_error_upper_bound=raw.get("doc_count_error_upper_bound"),
        sum_other_doc_count=raw.get("sum_other_doc_count"),
    )


def _bucket(aggregation_type: str, name: str | None, raw: Mapping[str, Any]):
    total = raw.get("doc_count", 0)
    aggregations = _sub_aggregations(raw)

    if aggregation_type in _DATE_BUCKET_TYPES:
        key = int(raw["key"])
        return DateHistogramBucket(
            date=datetime.fromtimestamp(key / 1000, tz=timezone.utc),
            key=key,
            key_as_string=raw.get("key_as_string"),
            total=total,
            aggregations=aggregations,
        )

    if aggregation_type in _RANGE_BUCKET_TYPES or "from" in raw or "to" in raw:
        return RangeBucket.model_validate(
            {
                "key": raw.get("key", name),
                "from": raw.get("from"),
                "from_as_string": raw.get("from_as_string"),
                "to": raw.get("to"),
                "to_as_string": raw.get("to_as_string"),
                "total": total,
                "aggregations": aggregations,
            }
        )

    return KeyedBucket(
        key=raw.get("key", name),
        key_as_string=raw.get("key_as_string"),
        total=total,
        aggregations=aggregations,
    )
