"""Per-document-type capabilities.

Declared once when a repository is registered instead of being probed from
document classes at runtime. Field names are Python attribute names; the
stored (wire) names come from the model's aliases.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class DocumentCapabilities(Generic[T]):
    document_type: type[T]
    id_field: str | None = "id"
    created_field: str | None = None
    updated_field: str | None = None
    soft_delete_field: str | None = None
    version_field: str | None = None
    has_parent: bool = False
    id_date: Callable[[str], datetime | None] | None = None  # Date encoded in an id, for partitioned indices
    default_excludes: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.document_type.__name__

    @property
    def has_identity(self) -> bool:
        return self.id_field is not None

    @property
    def has_version(self) -> bool:
        return self.version_field is not None

    @property
    def supports_soft_deletes(self) -> bool:
        return self.soft_delete_field is not None

    def wire_name(self, attribute: str) -> str:
        """Stored field name for a model attribute."""
        field = self.document_type.model_fields.get(attribute)
        if field is not None and field.alias:
            return field.alias
        return attribute

    def get_id(self, document: Any) -> str | None:
        if self.id_field is None or document is None:
            return None
        value = getattr(document, self.id_field, None)
        return str(value) if value is not None else None

    def is_deleted(self, document: Any) -> bool:
        if self.soft_delete_field is None:
            return False
        return bool(getattr(document, self.soft_delete_field, False))

    def date_for_id(self, id: str) -> datetime | None:
        return self.id_date(id) if self.id_date else None

    def load(self, source: dict[str, Any], version: int | None = None) -> T:
        """Build a document from its stored source, stamping the version token."""
        document = self.document_type.model_validate(source)
        if self.version_field and version is not None:
            document = document.model_copy(update={self.version_field: version})
        return document

    def dump(self, document: T) -> dict[str, Any]:
        """JSON-compatible form that `load` accepts."""
        return document.model_dump(mode="json", by_alias=True)
