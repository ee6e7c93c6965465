from datetime import date, timedelta
from typing import Optional

from lending.core.clock import resolve_today
from lending.core.config import settings
from lending.core.errors import ConflictError, ConflictReason, InvalidArgumentError
from lending.core.logging import get_logger
from lending.db.models import Loan

logger = get_logger("services.renewal")


def renewals_left(loan: Loan) -> int:
    return settings.MAX_RENEWALS - loan.renewal_count


def renew(loan: Optional[Loan], today: Optional[date] = None) -> Loan:
    """Push the due date one loan period past today and count the renewal.

    Leaves the loan untouched when the renewal cap has been reached.
    """
    if loan is None:
        raise InvalidArgumentError("Loan must not be empty")
    if renewals_left(loan) <= 0:
        raise ConflictError(
            ConflictReason.RENEWAL_LIMIT_EXCEEDED,
            f"Renewal limit of {settings.MAX_RENEWALS} reached",
        )
    loan.renewal_count += 1
    loan.due_date = resolve_today(today) + timedelta(days=settings.LOAN_PERIOD_DAYS)
    logger.debug(f"Loan renewed: id={loan.id} count={loan.renewal_count} due={loan.due_date}")
    return loan
