from typing import Iterable, Optional

from lending.core.config import settings
from lending.core.errors import InvalidArgumentError
from lending.db.models import Loan, Reservation, OPEN_RESERVATION_STATUSES


def remaining_loan_quota(loans: Optional[Iterable[Loan]], cap: Optional[int] = None) -> int:
    """How many more loans a borrower holding ``loans`` may take out."""
    if loans is None:
        raise InvalidArgumentError("Loan list must not be empty")
    cap = settings.MAX_OPEN_LOANS if cap is None else cap
    open_loans = sum(1 for loan in loans if not loan.returned)
    remaining = cap - open_loans
    if remaining < 0:
        raise InvalidArgumentError(
            f"Borrower holds {open_loans} open loans, more than the cap of {cap}"
        )
    return remaining


def remaining_reservation_quota(
    reservations: Optional[Iterable[Reservation]], cap: Optional[int] = None
) -> int:
    """How many more reservations may be queued; ACTIVE and WAITING count."""
    if reservations is None:
        raise InvalidArgumentError("Reservation list must not be empty")
    cap = settings.MAX_OPEN_RESERVATIONS if cap is None else cap
    open_reservations = sum(
        1 for reservation in reservations if reservation.status in OPEN_RESERVATION_STATUSES
    )
    remaining = cap - open_reservations
    if remaining < 0:
        raise InvalidArgumentError(
            f"Borrower holds {open_reservations} open reservations, more than the cap of {cap}"
        )
    return remaining
