"""Index descriptors and the physical naming convention.

Physical index names must stay bit-exact with existing clusters:

    {alias}-v{version}                  single index
    {alias}-v{version}-{period}         time-partitioned index, one per period
"""

from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any

from pydantic import Field

from searchrepo.domain.shared.model.value import ValueObject

UNKNOWN_VERSION = -1


class PartitionInterval(StrEnum):
    MONTHLY = "monthly"
    DAILY = "daily"

    @property
    def date_format(self) -> str:
        return "%Y.%m" if self is PartitionInterval.MONTHLY else "%Y.%m.%d"


class SubTypeDescriptor(ValueObject):
    """A document type stored in the index. Child types name their parent join path."""

    name: str
    parent_path: str | None = None


class IndexDescriptor(ValueObject):
    """Static description of one logical index.

    Immutable; built from configuration once per entity type.
    """

    name: str
    alias: str | None = None  # Defaults to name
    version: int = Field(default=1, ge=1)
    time_partitioned: bool = False
    partition_interval: PartitionInterval = PartitionInterval.MONTHLY
    partition_field: str = "created"  # Date field used to route range queries to period indices
    settings: dict[str, Any] = {}
    mappings: dict[str, Any] = {}
    sub_types: tuple[SubTypeDescriptor, ...] = ()

    @property
    def alias_name(self) -> str:
        return self.alias or self.name

    @property
    def versioned_name(self) -> str:
        return versioned_name(self.alias_name, self.version)

    @property
    def index_pattern(self) -> str:
        """Wildcard matching every period index of this version."""
        return f"{self.versioned_name}-*"

    @property
    def child_types(self) -> list[SubTypeDescriptor]:
        return [t for t in self.sub_types if t.parent_path]

    def index_body(self) -> dict[str, Any]:
        """Request body for creating the concrete index."""
        body: dict[str, Any] = {}
        if self.settings:
            body["settings"] = self.settings
        if self.mappings:
            body["mappings"] = self.mappings
        return body

    def template_body(self) -> dict[str, Any]:
        """Composable index template applied to every future period index.

        New period indices join the alias automatically.
        """
        template: dict[str, Any] = {"aliases": {self.alias_name: {}}}
        if self.settings:
            template["settings"] = self.settings
        if self.mappings:
            template["mappings"] = self.mappings
        return {"index_patterns": [self.index_pattern], "template": template}

    # -------------------------------------------------------------------------
    # Time partitions
    # -------------------------------------------------------------------------

    def period_key(self, value: datetime) -> str:
        return _as_utc(value).strftime(self.partition_interval.date_format)

    def index_for_date(self, value: datetime) -> str:
        """Physical index holding documents dated `value`."""
        if not self.time_partitioned:
            return self.versioned_name
        return f"{self.versioned_name}-{self.period_key(value)}"

    def indexes_for_range(self, start: datetime | None, end: datetime | None) -> list[str]:
        """Period indices covering [start, end], oldest first.

        A missing start means now; a missing end, or one before start, means now.
        """
        if not self.time_partitioned:
            return [self.versioned_name]

        now = datetime.now(timezone.utc)
        start = _as_utc(start) if start else now
        end = _as_utc(end) if end else now
        if end < start:
            end = now

        names: list[str] = []
        current = self._period_start(start)
        while current <= end:
            names.append(self.index_for_date(current))
            current = self._next_period(current)
        return names

    def _period_start(self, value: datetime) -> datetime:
        if self.partition_interval is PartitionInterval.MONTHLY:
            return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return value.replace(hour=0, minute=0, second=0, microsecond=0)

    def _next_period(self, value: datetime) -> datetime:
        if self.partition_interval is PartitionInterval.DAILY:
            return value + timedelta(days=1)
        if value.month == 12:
            return value.replace(year=value.year + 1, month=1)
        return value.replace(month=value.month + 1)


def versioned_name(alias: str, version: int) -> str:
    return f"{alias}-v{version}"


def parse_alias_version(index_name: str) -> int:
    """Read the schema version out of a physical index name.

    Takes the text after the final "-v" up to the next "-" (or the end).
    Returns UNKNOWN_VERSION when there is no such suffix or it is not a number.
    """
    marker = index_name.rfind("-v")
    if marker < 0:
        return UNKNOWN_VERSION

    version = index_name[marker + 2 :].split("-", 1)[0]
    if not (version.isascii() and version.isdigit()):
        return UNKNOWN_VERSION
    return int(version)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
