"""
Fee arithmetic for loans.

Pure functions over three dates: when the loan started, when it is due and
when (if ever) it came back. An open loan is priced as of ``today``.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from lending.core.clock import resolve_today
from lending.core.config import settings
from lending.core.errors import InvalidArgumentError
from lending.db.models import Loan


@dataclass(frozen=True)
class FeeBreakdown:
    base_fee: float
    late_fee: float
    total_fee: float


def late_fee(
    return_date: Optional[date],
    due_date: Optional[date],
    today: Optional[date] = None,
) -> float:
    """Whole days past ``due_date`` times the daily late rate."""
    if due_date is None:
        raise InvalidArgumentError("Due date must not be empty")
    end = return_date if return_date is not None else resolve_today(today)
    if end <= due_date:
        return 0.00
    days_late = (end - due_date).days
    return round(days_late * settings.DAILY_LATE_FEE, 2)


def base_rental_fee(
    start_date: Optional[date],
    return_date: Optional[date],
    due_date: Optional[date],
    today: Optional[date] = None,
) -> float:
    """Whole days on loan, capped at the due date, times the daily rental rate."""
    if start_date is None or due_date is None:
        raise InvalidArgumentError("Start date and due date must not be empty")

    if return_date is not None:
        end = due_date if return_date > due_date else return_date
    else:
        end = min(resolve_today(today), due_date)

    if start_date > end:
        raise InvalidArgumentError(
            "Start date cannot be after the return date, due date or current date"
        )
    return round((end - start_date).days * settings.DAILY_RENTAL_FEE, 2)


def total_fee(base: float, late: float) -> float:
    if base < 0 or late < 0:
        raise InvalidArgumentError("Fee components cannot be negative")
    return round(base + late, 2)


def fee_breakdown(loan: Loan, today: Optional[date] = None) -> FeeBreakdown:
    base = base_rental_fee(loan.start_date, loan.return_date, loan.due_date, today)
    late = late_fee(loan.return_date, loan.due_date, today)
    return FeeBreakdown(base_fee=base, late_fee=late, total_fee=total_fee(base, late))
