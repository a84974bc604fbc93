"""Customer domain error taxonomy.

Value objects raise ValidationError at construction, services raise
DomainRuleViolation / NotFoundError, and storage failures surface as
InfrastructureError. The HTTP boundary maps them to 422 / 404 / 500.
"""

from typing import Optional


class CustomerError(Exception):
    """Base class for all customer domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CustomerError, ValueError):
    """Raised when a value object cannot be constructed from its input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DomainRuleViolation(CustomerError):
    """Raised when a business rule rejects an operation.

    `rule` is a short machine-readable identifier (e.g. "merge.same_customer").
    """

    def __init__(self, message: str, rule: Optional[str] = None):
        super().__init__(message)
        self.rule = rule


class NotFoundError(CustomerError):
    """Raised when an entity cannot be found by id."""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} #{entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InfrastructureError(CustomerError):
    """Raised when storage or transaction handling fails.

    The original exception is kept in `cause` (and chained via `raise ... from`).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MergeFailedError(InfrastructureError):
    """Raised when a merge transaction was rolled back."""


class IdempotencyKeyConflict(CustomerError):
    """Raised by an idempotency store when a live record already holds the key.

    Not an error for callers: it means a concurrent request got there first.
    """

    def __init__(self, key: str):
        super().__init__(f"Idempotency key {key!r} is already recorded")
        self.key = key
