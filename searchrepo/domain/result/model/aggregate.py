"""Engine-agnostic aggregation results.

Every variant carries a `type` literal so cached results deserialize back
into the same variant.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import ConfigDict, Field

from searchrepo.domain.shared.model.value import ValueObject


# =============================================================================
# Metrics
# =============================================================================


class ValueAggregate(ValueObject):
    type: Literal["value"] = "value"
    value: float | None = None
    data: dict[str, Any] = {}  # value_as_string, bucket keys, ...


class ObjectValueAggregate(ValueObject):
    """Scripted metric result; shape is whatever the script returned."""

    type: Literal["object"] = "object"
    value: Any = None


class StatsAggregate(ValueObject):
    type: Literal["stats"] = "stats"
    count: int = 0
    min: float | None = None
    max: float | None = None
    average: float | None = None
    sum: float | None = None


class StdDeviationBounds(ValueObject):
    upper: float | None = None
    lower: float | None = None


class ExtendedStatsAggregate(ValueObject):
    type: Literal["extended_stats"] = "extended_stats"
    count: int = 0
    min: float | None = None
    max: float | None = None
    average: float | None = None
    sum: float | None = None
    sum_of_squares: float | None = None
    variance: float | None = None
    std_deviation: float | None = None
    std_deviation_bounds: StdDeviationBounds | None = None


class PercentileItem(ValueObject):
    percentile: float
    value: float | None = None


class PercentilesAggregate(ValueObject):
    type: Literal["percentiles"] = "percentiles"
    items: tuple[PercentileItem, ...] = ()

    def get(self, percentile: float) -> float | None:
        for item in self.items:
            if item.percentile == percentile:
                return item.value
        return None


class TopHitsAggregate(ValueObject):
    type: Literal["top_hits"] = "top_hits"
    total: int = 0
    hits: tuple[dict[str, Any], ...] = ()  # Raw document sources


# =============================================================================
# Buckets
# =============================================================================


class SingleBucketAggregate(ValueObject):
    type: Literal["single_bucket"] = "single_bucket"
    total: int = 0
    aggregations: "AggregationMap" = {}


class KeyedBucket(ValueObject):
    type: Literal["keyed"] = "keyed"
    key: Any = None
    key_as_string: str | None = None
    total: int = 0
    aggregations: "AggregationMap" = {}


class DateHistogramBucket(ValueObject):
    type: Literal["date"] = "date"
    date: datetime
    key: int  # Epoch milliseconds
    key_as_string: str | None = None
    total: int = 0
    aggregations: "AggregationMap" = {}


class RangeBucket(ValueObject):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["range"] = "range"
    key: str | None = None
    from_: float | None = Field(default=None, alias="from")
    from_as_string: str | None = None
    to: float | None = None
    to_as_string: str | None = None
    total: int = 0
    aggregations: "AggregationMap" = {}


Bucket = Annotated[
    Union[KeyedBucket, DateHistogramBucket, RangeBucket],
    Field(discriminator="type"),
]


class BucketAggregate(ValueObject):
    type: Literal["bucket"] = "bucket"
    items: tuple[Bucket, ...] = ()
    doc_count_error_upper_bound: int | None = None
    sum_other_doc_count: int | None = None


class UnknownAggregate(ValueObject):
    """A response shape the decoder does not recognise. Never exposed to callers."""

    type: Literal["unknown"] = "unknown"
    raw: Any = None


Aggregate = Annotated[
    Union[
        ValueAggregate,
        ObjectValueAggregate,
        StatsAggregate,
        ExtendedStatsAggregate,
        PercentilesAggregate,
        TopHitsAggregate,
        SingleBucketAggregate,
        BucketAggregate,
    ],
    Field(discriminator="type"),
]

# Unrecognised aggregations map to None
AggregationMap = dict[str, Optional[Aggregate]]

for _model in (SingleBucketAggregate, KeyedBucket, DateHistogramBucket, RangeBucket, BucketAggregate):
    _model.model_rebuild()
