"""
Error kinds raised by the lending engine.

Every failure the engine reports is one of these. Business-rule failures are
``ConflictError`` tagged with a ``ConflictReason`` so callers can tell them
apart without parsing messages. ``InvalidStateError`` marks a defect in a
calling layer and is never translated into a user-facing response.
"""
import enum
from typing import Optional


class ConflictReason(str, enum.Enum):
    ITEM_UNAVAILABLE = "item_unavailable"
    DUPLICATE_ACTIVE_LOAN = "duplicate_active_loan"
    DUPLICATE_ACTIVE_RESERVATION = "duplicate_active_reservation"
    LOAN_LIMIT_EXCEEDED = "loan_limit_exceeded"
    RESERVATION_LIMIT_EXCEEDED = "reservation_limit_exceeded"
    ALREADY_RETURNED = "already_returned"
    RENEWAL_WINDOW_INVALID = "renewal_window_invalid"
    RENEWAL_LIMIT_EXCEEDED = "renewal_limit_exceeded"
    RESERVATIONS_PENDING = "reservations_pending"
    CANNOT_CANCEL = "cannot_cancel"
    CAPACITY_BELOW_COMMITMENTS = "capacity_below_commitments"


class LendingError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LendingError, LookupError):
    """A referenced item, borrower, loan, reservation or account is missing."""

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class AccessDeniedError(LendingError, PermissionError):
    def __init__(self, message: str = "Credential not recognised"):
        super().__init__(message)


class ConflictError(LendingError):
    def __init__(self, reason: ConflictReason, message: str):
        super().__init__(message)
        self.reason = reason


class InvalidStateError(LendingError, RuntimeError):
    pass


class InvalidArgumentError(LendingError, ValueError):
    pass
