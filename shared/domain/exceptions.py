"""
Engine error taxonomy

Every error the engine reports to a caller derives from ``CourtsideError``
and carries a stable machine readable ``kind``, a human readable message and
a ``details`` dict. None of these are raised after a write has happened, so a
caller may resubmit freely; only ``TransientStoreError`` invites an automatic
retry of the same request.
"""

from decimal import Decimal
from typing import Any


class CourtsideError(Exception):
    """Base class for errors surfaced to collaborators."""

    kind = 'error'

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            'kind': self.kind,
            'message': self.message,
            'details': {key: _jsonable(value) for key, value in self.details.items()},
        }


class ValidationError(CourtsideError):
    """Malformed or missing input, rejected before any transaction starts."""

    kind = 'validation_error'


class ConflictError(CourtsideError):
    """The requested interval overlaps an active booking."""

    kind = 'conflict'


class DuplicateBookingError(ConflictError):
    """The overlapping booking belongs to the requesting account itself."""

    kind = 'duplicate_booking'


class InvalidTransitionError(ConflictError):
    """The entity is not in a state that allows the requested transition."""

    kind = 'invalid_transition'


class TaskLimitReachedError(ConflictError):
    kind = 'task_limit_reached'


class OutOfStockError(ConflictError):
    kind = 'out_of_stock'


class InsufficientFundsError(CourtsideError):
    """A credits or points debit would drive the balance below zero."""

    kind = 'insufficient_funds'

    def __init__(self, currency: str, required, available):
        shortfall = required - available
        super().__init__(
            f"Insufficient {currency}: {required} required, {available} available",
            currency=currency,
            required=required,
            available=available,
            shortfall=shortfall,
        )
        self.currency = currency
        self.shortfall = shortfall


class WindowViolationError(CourtsideError):
    """A time-relative business rule (buffer, cutoff, modification count) was broken."""

    kind = 'window_violation'


class NotFoundError(CourtsideError):
    kind = 'not_found'


class TransientStoreError(CourtsideError):
    """Timeout, lock contention or serialization failure; nothing was written."""

    kind = 'transient_store_error'


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return value
