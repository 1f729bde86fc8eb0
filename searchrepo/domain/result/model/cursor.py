"""Page cursors - where the next page of a result starts.

A cursor is plain data stored next to a result; `next_request` turns it back
into a query and options, so results never carry callables.
"""

from typing import Annotated, Any, Literal, NamedTuple, Union

from pydantic import Field

from searchrepo.domain.query.model.command_options import CommandOptions
from searchrepo.domain.query.model.query import RepositoryQuery
from searchrepo.domain.shared.error import CursorPagingError
from searchrepo.domain.shared.model.value import ValueObject


class NoCursor(ValueObject):
    kind: Literal["none"] = "none"


class OffsetCursor(ValueObject):
    kind: Literal["offset"] = "offset"
    page: int


class SearchAfterCursor(ValueObject):
    """Sort values of the last hit. Empty when none could be extracted."""

    kind: Literal["search_after"] = "search_after"
    page: int
    values: tuple[Any, ...] = ()


class SnapshotCursor(ValueObject):
    kind: Literal["snapshot"] = "snapshot"
    page: int
    scroll_id: str


PageCursor = Annotated[
    Union[NoCursor, OffsetCursor, SearchAfterCursor, SnapshotCursor],
    Field(discriminator="kind"),
]


class PageRequest(NamedTuple):
    query: RepositoryQuery
    options: CommandOptions


def next_request(
    query: RepositoryQuery, options: CommandOptions, cursor: PageCursor
) -> PageRequest | None:
    """Request for the page after `cursor`, or None when there is none.

    Offset paging re-runs the original query one page further; search-after
    and snapshot paging continue from the cursor's state.

    Raises:
        CursorPagingError: If a search-after cursor has no sort values.
    """
    match cursor:
        case SnapshotCursor(page=page, scroll_id=scroll_id):
            next_options = options.clone().snapshot_scroll_id(scroll_id).page_number(page + 1)
        case SearchAfterCursor(page=page, values=values):
            if not values:
                raise CursorPagingError(
                    "Unable to calculate search-after values from the last document: "
                    "sort on a field the result type exposes or give the type an identity"
                )
            next_options = options.clone().search_after(*values).page_number(page + 1)
        case OffsetCursor(page=page):
            next_options = options.clone().page_number(page + 1)
        case _:
            return None
    return PageRequest(query, next_options)
