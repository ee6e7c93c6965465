from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.clock import resolve_today
from lending.core.config import settings
from lending.core.errors import ConflictError, ConflictReason, NotFoundError
from lending.core.logging import get_logger, log_fields
from lending.db.models import Borrower, Loan
from lending.db.repository import (
    get_borrower,
    get_item_for_update,
    get_loan,
    get_loan_for_update,
    list_loans_for_borrower,
    list_reservations_for_item,
)
from lending.services import renewal
from lending.services.borrower import require_credential
from lending.services.limits import remaining_loan_quota
from lending.services.reservation_queue import (
    count_active,
    find_active_reservation_for,
    has_waiting,
    promote_oldest_waiting,
    resolve_active_reservation_for,
)

logger = get_logger("services.loan")


def _new_loan(
    borrower_id: str, item_id: str, today: date, reservation_id: Optional[str] = None
) -> Loan:
    return Loan(
        borrower_id=borrower_id,
        item_id=item_id,
        reservation_id=reservation_id,
        start_date=today,
        due_date=today + timedelta(days=settings.LOAN_PERIOD_DAYS),
        returned=False,
        renewal_count=0,
    )


async def _load_owner(db: AsyncSession, loan: Loan) -> Borrower:
    borrower = await get_borrower(db, loan.borrower_id)
    if borrower is None:
        raise NotFoundError("borrower", loan.borrower_id)
    return borrower


async def borrow_item(
    db: AsyncSession,
    item_id: str,
    borrower_id: str,
    password: str,
    today: Optional[date] = None,
) -> Loan:
    """Lend one copy of an item to a borrower.

    A borrower holding an ACTIVE reservation on the item collects the copy held
    for them. Anyone else may only take a copy that is free and not held for a
    reservation.
    """
    today = resolve_today(today)

    item = await get_item_for_update(db, item_id)
    if item is None:
        raise NotFoundError("item", item_id)
    borrower = await get_borrower(db, borrower_id)
    if borrower is None:
        raise NotFoundError("borrower", borrower_id)

    await require_credential(db, borrower.account_id, password)

    loans = await list_loans_for_borrower(db, borrower.id)
    if any(loan.item_id == item.id and not loan.returned for loan in loans):
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_LOAN,
            "Borrower already has an open loan for this item",
        )
    if remaining_loan_quota(loans) == 0:
        raise ConflictError(
            ConflictReason.LOAN_LIMIT_EXCEEDED,
            f"Borrower has reached the limit of {settings.MAX_OPEN_LOANS} open loans",
        )

    reservations = await list_reservations_for_item(db, item.id)
    held = find_active_reservation_for(borrower.id, reservations)

    if held is not None:
        item.check_out_copy()
        reservation = resolve_active_reservation_for(borrower.id, reservations)
        loan = _new_loan(borrower.id, item.id, today, reservation_id=reservation.id)
        db.add(loan)
        await db.flush()
        reservation.loan_id = loan.id
    else:
        if item.available_copies <= 0:
            raise ConflictError(
                ConflictReason.ITEM_UNAVAILABLE, "No copies of this item are available"
            )
        if count_active(reservations) >= item.available_copies:
            raise ConflictError(
                ConflictReason.ITEM_UNAVAILABLE,
                "Every free copy of this item is held for a reservation",
            )
        item.check_out_copy()
        loan = _new_loan(borrower.id, item.id, today)
        db.add(loan)

    await db.flush()
    await db.refresh(loan)

    logger.info(
        f"Loan created: id={loan.id} borrower={borrower.id} item={item.id} "
        f"reservation={loan.reservation_id}",
        extra=log_fields(
            loan_id=loan.id,
            borrower_id=borrower.id,
            item_id=item.id,
            reservation_id=loan.reservation_id,
            available_copies=item.available_copies,
        ),
    )
    return loan


async def return_loan(
    db: AsyncSession,
    loan_id: str,
    password: str,
    today: Optional[date] = None,
) -> Loan:
    """Take a copy back and offer it to the head of the item's waiting list."""
    today = resolve_today(today)

    loan = await get_loan(db, loan_id)
    if loan is None:
        raise NotFoundError("loan", loan_id)
    borrower = await _load_owner(db, loan)
    await require_credential(db, borrower.account_id, password)

    item = await get_item_for_update(db, loan.item_id)
    if item is None:
        raise NotFoundError("item", loan.item_id)
    # A concurrent return may have committed before the item lock was taken.
    loan = await get_loan_for_update(db, loan.id)
    if loan.returned:
        raise ConflictError(ConflictReason.ALREADY_RETURNED, "Loan has already been returned")

    item.check_in_copy()
    loan.mark_returned(today)
    await db.flush()

    logger.info(
        f"Loan returned: id={loan.id} item={item.id} available={item.available_copies}",
        extra=log_fields(loan_id=loan.id, item_id=item.id, return_date=today),
    )

    await promote_oldest_waiting(db, item, today)
    await db.refresh(loan)
    return loan


async def renew_loan(
    db: AsyncSession,
    loan_id: str,
    password: str,
    today: Optional[date] = None,
) -> Loan:
    """Renew a loan on its due date while nobody is waiting for the item."""
    today = resolve_today(today)

    loan = await get_loan(db, loan_id)
    if loan is None:
        raise NotFoundError("loan", loan_id)
    borrower = await _load_owner(db, loan)
    await require_credential(db, borrower.account_id, password)

    item = await get_item_for_update(db, loan.item_id)
    if item is None:
        raise NotFoundError("item", loan.item_id)
    loan = await get_loan_for_update(db, loan.id)

    if loan.returned:
        raise ConflictError(
            ConflictReason.ALREADY_RETURNED, "A returned loan cannot be renewed"
        )
    # Overdue is reported ahead of "not due yet".
    if loan.due_date < today:
        raise ConflictError(
            ConflictReason.RENEWAL_WINDOW_INVALID,
            "The due date has passed; the loan can no longer be renewed",
        )
    if loan.due_date != today:
        raise ConflictError(
            ConflictReason.RENEWAL_WINDOW_INVALID,
            "A loan can only be renewed on its due date",
        )

    reservations = await list_reservations_for_item(db, item.id)
    if has_waiting(reservations):
        raise ConflictError(
            ConflictReason.RESERVATIONS_PENDING,
            "Other borrowers are waiting for this item",
        )

    renewal.renew(loan, today)
    await db.flush()
    await db.refresh(loan)

    logger.info(
        f"Loan renewed: id={loan.id} renewals={loan.renewal_count} due={loan.due_date}",
        extra=log_fields(loan_id=loan.id, renewal_count=loan.renewal_count, due_date=loan.due_date),
    )
    return loan
