"""
The reservation queue for a single item.

State machine (transitions live on ``Reservation``)::

    WAITING --promotion------------> ACTIVE
    ACTIVE  --holder borrows-------> FULFILLED
    ACTIVE  --deadline passes------> EXPIRED
    WAITING | ACTIVE --cancel------> CANCELLED

Promotion is strictly oldest-first by ``registered_at`` (ties by ``id``) and is
recomputed from a fresh read of the queue on every call. An ACTIVE reservation
holds one free copy for its borrower, so promotion only happens while the item
has more free copies than ACTIVE holds.

The selectors take the item's reservation list as an argument; a ``None`` list
means the caller never loaded it, which is a defect and raises
``InvalidStateError``.
"""
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.clock import as_utc, resolve_today
from lending.core.config import settings
from lending.core.errors import ConflictError, ConflictReason, InvalidArgumentError, InvalidStateError
from lending.core.logging import get_logger, log_fields
from lending.db.models import Item, Reservation, ReservationStatus
from lending.db.repository import (
    count_active_reservations_for_item,
    count_open_loans_for_item,
    list_reservations_for_item,
)

logger = get_logger("services.reservation_queue")


def _require_loaded(reservations: Optional[Sequence[Reservation]]) -> Sequence[Reservation]:
    if reservations is None:
        raise InvalidStateError("Reservation list must be loaded")
    return reservations


def count_active(reservations: Optional[Sequence[Reservation]]) -> int:
    return sum(
        1 for r in _require_loaded(reservations) if r.status == ReservationStatus.ACTIVE
    )


def has_waiting(reservations: Optional[Sequence[Reservation]]) -> bool:
    return any(r.status == ReservationStatus.WAITING for r in _require_loaded(reservations))


def waiting_in_order(reservations: Optional[Sequence[Reservation]]) -> List[Reservation]:
    """WAITING reservations, oldest first."""
    waiting = [r for r in _require_loaded(reservations) if r.status == ReservationStatus.WAITING]
    return sorted(waiting, key=lambda r: (as_utc(r.registered_at), r.id))


def pick_oldest_waiting(reservations: Optional[Sequence[Reservation]]) -> Optional[Reservation]:
    ordered = waiting_in_order(reservations)
    return ordered[0] if ordered else None


def find_active_reservation_for(
    borrower_id: str, reservations: Optional[Sequence[Reservation]]
) -> Optional[Reservation]:
    for reservation in _require_loaded(reservations):
        if (
            reservation.borrower_id == borrower_id
            and reservation.status == ReservationStatus.ACTIVE
        ):
            return reservation
    return None


def resolve_active_reservation_for(
    borrower_id: str, reservations: Optional[Sequence[Reservation]]
) -> Optional[Reservation]:
    """Fulfil the borrower's ACTIVE reservation on this item, if they hold one."""
    reservation = find_active_reservation_for(borrower_id, reservations)
    if reservation is not None:
        reservation.fulfill()
    return reservation


def decide_initial_status(
    item: Item,
    reservations: Optional[Sequence[Reservation]],
    reservation: Reservation,
    today: Optional[date] = None,
) -> ReservationStatus:
    """Start a new reservation ACTIVE if an unheld copy is free, else WAITING.

    ``reservations`` is the queue as it stood before ``reservation`` joined it.
    """
    holds = count_active(reservations)
    if item.available_copies > holds:
        reservation.activate(resolve_today(today), settings.RESERVATION_GRACE_DAYS)
    else:
        reservation.mark_waiting()
    return reservation.status


def promote_next(
    item: Item,
    reservations: Optional[Sequence[Reservation]],
    today: Optional[date] = None,
) -> Optional[Reservation]:
    if item.available_copies <= count_active(reservations):
        return None
    candidate = pick_oldest_waiting(reservations)
    if candidate is not None:
        candidate.activate(resolve_today(today), settings.RESERVATION_GRACE_DAYS)
    return candidate


async def promote_oldest_waiting(
    db: AsyncSession, item: Item, today: Optional[date] = None
) -> Optional[Reservation]:
    """Offer a free copy of ``item`` to the head of its waiting list."""
    reservations = await list_reservations_for_item(db, item.id)
    promoted = promote_next(item, reservations, today)
    if promoted is None:
        return None

    await db.flush()
    logger.info(
        f"Reservation promoted: id={promoted.id} item={item.id} "
        f"deadline={promoted.active_deadline}",
        extra=log_fields(
            reservation_id=promoted.id,
            item_id=item.id,
            borrower_id=promoted.borrower_id,
            active_deadline=promoted.active_deadline,
        ),
    )
    return promoted


async def rebalance_for_new_capacity(
    db: AsyncSession,
    item: Item,
    new_total_copies: int,
    today: Optional[date] = None,
) -> Item:
    """Apply an edit of ``item.total_copies`` and hand new copies to the queue.

    Commitments are read from storage, not from loaded collections: open loans
    plus ACTIVE holds must still fit in the new total.
    """
    if new_total_copies < 0:
        raise InvalidArgumentError("Total copies cannot be negative")

    open_loans = await count_open_loans_for_item(db, item.id)
    active_holds = await count_active_reservations_for_item(db, item.id)
    outstanding = open_loans + active_holds
    if new_total_copies < outstanding:
        raise ConflictError(
            ConflictReason.CAPACITY_BELOW_COMMITMENTS,
            f"Cannot reduce total copies to {new_total_copies}: {open_loans} on loan "
            f"and {active_holds} held for reservations",
        )

    delta = new_total_copies - item.total_copies
    item.available_copies = item.available_copies + delta
    item.total_copies = new_total_copies
    await db.flush()

    logger.info(
        f"Item capacity changed: id={item.id} total={item.total_copies} "
        f"available={item.available_copies} delta={delta}",
        extra=log_fields(item_id=item.id, delta=delta, outstanding=outstanding),
    )

    for _ in range(max(delta, 0)):
        await promote_oldest_waiting(db, item, today)
    return item
