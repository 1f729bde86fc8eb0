"""Error hierarchy for searchrepo.

Error layers:
- SearchRepoError: Base class for all searchrepo errors
- DomainError: Caller mistakes and violated preconditions (bad expressions,
  missing capabilities, impossible cursor paging)
- InfrastructureError: Store, cache, lock and queue failures

Adapters translate client-library exceptions into these types so that the
domain layer never imports elasticsearch or redis.
"""

from typing import Any


class SearchRepoError(Exception):
    """Base class for all searchrepo errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (caller-visible precondition and validation failures)
# =============================================================================


class DomainError(SearchRepoError):
    """Base class for domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class QueryValidationError(DomainError):
    """A filter, search, sort or aggregation expression could not be parsed."""

    def __init__(self, message: str, expression: str | None = None, position: int | None = None) -> None:
        super().__init__(message, code="QUERY_VALIDATION_ERROR")
        self.expression = expression
        self.position = position


class CursorPagingError(DomainError):
    """No sort value could be extracted to continue search-after paging."""


class CapabilityError(DomainError):
    """Operation requires a capability the document type does not declare."""


# =============================================================================
# Infrastructure Errors (system-level failures)
# =============================================================================


class InfrastructureError(SearchRepoError):
    """Base class for infrastructure/system errors."""


class ConfigurationError(InfrastructureError):
    """Index, alias or template could not be created or deleted."""

    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
        self.detail = detail


class StoreError(InfrastructureError):
    """The search store rejected a request."""

    def __init__(self, message: str, status: int | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


class StoreNotFoundError(StoreError):
    """Index, alias or document does not exist (404-class response)."""


class StoreUnavailableError(StoreError):
    """The search store could not be reached."""


class CacheUnavailableError(InfrastructureError):
    """Cache backend failed; callers degrade to uncached reads."""


class LockUnavailableError(InfrastructureError):
    """Lock backend failed; callers degrade to unthrottled operation."""


class QueueUnavailableError(InfrastructureError):
    """Work queue backend failed."""
