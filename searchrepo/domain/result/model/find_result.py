from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from searchrepo.domain.result.model.aggregate import AggregationMap
from searchrepo.domain.result.model.cursor import NoCursor, PageCursor

T = TypeVar("T")


class FindHit(BaseModel, Generic[T]):
    id: str | None = None
    document: T | None = None
    score: float | None = None
    version: int | None = None
    routing: str | None = None
    data: dict[str, Any] = {}  # index, type


class CountResult(BaseModel):
    total: int = 0
    aggregations: AggregationMap = {}


class FindResult(CountResult, Generic[T]):
    """One page of hits.

    `cursor` is excluded from serialization: cached pages get a fresh cursor
    when they are read back.
    """

    hits: list[FindHit[T]] = []
    page: int = 1
    has_more: bool = False
    scroll_id: str | None = None
    cursor: PageCursor = Field(default_factory=NoCursor, exclude=True)

    @property
    def documents(self) -> list[T]:
        return [hit.document for hit in self.hits if hit.document is not None]

    @property
    def ids(self) -> list[str]:
        return [hit.id for hit in self.hits if hit.id is not None]
