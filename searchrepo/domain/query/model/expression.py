"""Abstract syntax for filter and search expressions."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Union


class BoolOperator(StrEnum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class TermNode:
    """`value`, `field:value` or `field:"a phrase"`. Values may contain * and ? wildcards."""

    value: str
    field: str | None = None
    phrase: bool = False

    @property
    def is_wildcard(self) -> bool:
        return not self.phrase and ("*" in self.value or "?" in self.value)


@dataclass(frozen=True)
class RangeNode:
    """`field:[low TO high]`, `field:{low TO high}` or `field:>value`. None bounds are open."""

    field: str
    low: str | None = None
    high: str | None = None
    include_low: bool = True
    include_high: bool = True


@dataclass(frozen=True)
class ExistsNode:
    field: str


@dataclass(frozen=True)
class MissingNode:
    field: str


@dataclass(frozen=True)
class NotNode:
    child: "ExpressionNode"


@dataclass(frozen=True)
class GroupNode:
    """Children joined by one operator. Children marked required (+) are always ANDed."""

    children: tuple["ExpressionNode", ...]
    operator: BoolOperator = BoolOperator.AND
    field: str | None = None  # `field:(a OR b)` applies field to unfielded children


ExpressionNode = Union[TermNode, RangeNode, ExistsNode, MissingNode, NotNode, GroupNode]
