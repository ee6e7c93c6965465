from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.clock import resolve_today, utcnow
from lending.core.config import settings
from lending.core.errors import ConflictError, ConflictReason, NotFoundError
from lending.core.logging import get_logger, log_fields
from lending.db.models import OPEN_RESERVATION_STATUSES, Reservation
from lending.db.repository import (
    get_borrower,
    get_item_for_update,
    get_reservation,
    get_reservation_for_update,
    list_active_reservations_due_before,
    list_loans_for_borrower,
    list_reservations_for_borrower,
    list_reservations_for_item,
)
from lending.services.borrower import require_credential
from lending.services.limits import remaining_reservation_quota
from lending.services.reservation_queue import (
    decide_initial_status,
    find_active_reservation_for,
    promote_oldest_waiting,
)

logger = get_logger("services.reservation")


async def reserve_item(
    db: AsyncSession,
    item_id: str,
    borrower_id: str,
    password: str,
    now: Optional[datetime] = None,
) -> Reservation:
    """Queue a borrower for an item; ACTIVE straight away if an unheld copy is free."""
    now = now or utcnow()

    item = await get_item_for_update(db, item_id)
    if item is None:
        raise NotFoundError("item", item_id)
    borrower = await get_borrower(db, borrower_id)
    if borrower is None:
        raise NotFoundError("borrower", borrower_id)

    await require_credential(db, borrower.account_id, password)

    queue = await list_reservations_for_item(db, item.id)
    if find_active_reservation_for(borrower.id, queue) is not None:
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_RESERVATION,
            "Borrower already holds an active reservation for this item",
        )

    loans = await list_loans_for_borrower(db, borrower.id)
    if any(loan.item_id == item.id and not loan.returned for loan in loans):
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_LOAN,
            "Borrower already has this item on loan",
        )

    own_reservations = await list_reservations_for_borrower(db, borrower.id)
    if remaining_reservation_quota(own_reservations) == 0:
        raise ConflictError(
            ConflictReason.RESERVATION_LIMIT_EXCEEDED,
            f"Borrower has reached the limit of {settings.MAX_OPEN_RESERVATIONS} open reservations",
        )

    reservation = Reservation(item_id=item.id, borrower_id=borrower.id, registered_at=now)
    decide_initial_status(item, queue, reservation, today=now.date())
    db.add(reservation)
    await db.flush()
    await db.refresh(reservation)

    logger.info(
        f"Reservation created: id={reservation.id} item={item.id} "
        f"borrower={borrower.id} status={reservation.status.value}",
        extra=log_fields(
            reservation_id=reservation.id,
            item_id=item.id,
            borrower_id=borrower.id,
            status=reservation.status.value,
        ),
    )
    return reservation


async def cancel_reservation(
    db: AsyncSession,
    reservation_id: str,
    password: str,
    today: Optional[date] = None,
) -> Reservation:
    """Withdraw a WAITING or ACTIVE reservation and pass any freed hold on."""
    reservation = await get_reservation(db, reservation_id)
    if reservation is None:
        raise NotFoundError("reservation", reservation_id)
    borrower = await get_borrower(db, reservation.borrower_id)
    if borrower is None:
        raise NotFoundError("borrower", reservation.borrower_id)

    await require_credential(db, borrower.account_id, password)

    item = await get_item_for_update(db, reservation.item_id)
    if item is None:
        raise NotFoundError("item", reservation.item_id)
    reservation = await get_reservation_for_update(db, reservation.id)
    if reservation.status not in OPEN_RESERVATION_STATUSES:
        raise ConflictError(
            ConflictReason.CANNOT_CANCEL,
            f"A {reservation.status.value} reservation can no longer be cancelled",
        )

    previous = reservation.status
    reservation.cancel()
    await db.flush()

    logger.info(
        f"Reservation cancelled: id={reservation.id} was={previous.value}",
        extra=log_fields(reservation_id=reservation.id, item_id=item.id),
    )

    await promote_oldest_waiting(db, item, today)
    await db.refresh(reservation)
    return reservation


async def sweep_expired_reservations(
    db: AsyncSession, today: Optional[date] = None
) -> List[Reservation]:
    """Expire ACTIVE reservations more than a full day past their deadline.

    Each expiry releases one held copy, so the queue gets one promotion attempt
    per expired reservation.
    """
    today = resolve_today(today)
    cutoff = today - timedelta(days=1)

    expired = []
    for candidate in await list_active_reservations_due_before(db, cutoff):
        item = await get_item_for_update(db, candidate.item_id)
        # Collected, cancelled or expired by someone else since the scan.
        reservation = await get_reservation_for_update(db, candidate.id)
        if not reservation.is_past_deadline(cutoff):
            continue

        reservation.expire()
        await db.flush()
        expired.append(reservation)

        logger.info(
            f"Reservation expired: id={reservation.id} item={reservation.item_id} "
            f"deadline={reservation.active_deadline}",
            extra=log_fields(
                reservation_id=reservation.id,
                item_id=reservation.item_id,
                borrower_id=reservation.borrower_id,
            ),
        )
        if item is not None:
            await promote_oldest_waiting(db, item, today)

    if expired:
        logger.info(f"Expiry sweep completed: {len(expired)} reservations expired")
    return expired
