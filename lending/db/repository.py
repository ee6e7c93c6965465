"""
Lookup, aggregate and bulk-fetch queries used by the lending engine.

Lookups return ``None`` on a miss; callers decide whether that is an error.
Lists that feed the reservation queue are ordered by ``registered_at`` then
``id`` so oldest-first is a property of the query, not of insertion order.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lending.db.models import Borrower, Item, Loan, Reservation, ReservationStatus, User


async def get_item(db: AsyncSession, item_id: str) -> Optional[Item]:
    result = await db.execute(select(Item).where(Item.id == item_id))
    return result.scalar_one_or_none()


async def get_item_for_update(db: AsyncSession, item_id: str) -> Optional[Item]:
    """Load an item and lock its row until the transaction ends.

    Every operation that changes an item's counters or reservation queue goes
    through here, so two such operations on the same item never interleave.
    """
    result = await db.execute(
        select(Item).where(Item.id == item_id).with_for_update().execution_options(
            populate_existing=True
        )
    )
    return result.scalar_one_or_none()


async def get_loan_for_update(db: AsyncSession, loan_id: str) -> Optional[Loan]:
    """Reload a loan under a row lock, overwriting any stale copy in the session."""
    result = await db.execute(
        select(Loan).where(Loan.id == loan_id).with_for_update().execution_options(
            populate_existing=True
        )
    )
    return result.scalar_one_or_none()


async def get_reservation_for_update(
    db: AsyncSession, reservation_id: str
) -> Optional[Reservation]:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_borrower(db: AsyncSession, borrower_id: str) -> Optional[Borrower]:
    result = await db.execute(select(Borrower).where(Borrower.id == borrower_id))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_loan(db: AsyncSession, loan_id: str) -> Optional[Loan]:
    result = await db.execute(select(Loan).where(Loan.id == loan_id))
    return result.scalar_one_or_none()


async def get_reservation(db: AsyncSession, reservation_id: str) -> Optional[Reservation]:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    return result.scalar_one_or_none()


async def count_open_loans_for_item(db: AsyncSession, item_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Loan)
        .where(Loan.item_id == item_id, Loan.returned.is_(False))
    )
    return result.scalar() or 0


async def count_active_reservations_for_item(db: AsyncSession, item_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Reservation)
        .where(
            Reservation.item_id == item_id,
            Reservation.status == ReservationStatus.ACTIVE,
        )
    )
    return result.scalar() or 0


async def list_reservations_for_item(
    db: AsyncSession, item_id: str, status: Optional[ReservationStatus] = None
) -> List[Reservation]:
    query = select(Reservation).where(Reservation.item_id == item_id)
    if status is not None:
        query = query.where(Reservation.status == status)
    result = await db.execute(
        query.order_by(Reservation.registered_at.asc(), Reservation.id.asc())
    )
    return list(result.scalars().all())


async def list_loans_for_item(
    db: AsyncSession, item_id: str, returned: Optional[bool] = None
) -> List[Loan]:
    query = select(Loan).where(Loan.item_id == item_id)
    if returned is not None:
        query = query.where(Loan.returned.is_(returned))
    result = await db.execute(query.order_by(Loan.start_date.desc(), Loan.created_at.desc()))
    return list(result.scalars().all())


async def list_loans_for_borrower(
    db: AsyncSession, borrower_id: str, returned: Optional[bool] = None
) -> List[Loan]:
    query = select(Loan).where(Loan.borrower_id == borrower_id)
    if returned is not None:
        query = query.where(Loan.returned.is_(returned))
    result = await db.execute(query.order_by(Loan.start_date.desc(), Loan.created_at.desc()))
    return list(result.scalars().all())


async def list_reservations_for_borrower(
    db: AsyncSession, borrower_id: str, status: Optional[ReservationStatus] = None
) -> List[Reservation]:
    query = select(Reservation).where(Reservation.borrower_id == borrower_id)
    if status is not None:
        query = query.where(Reservation.status == status)
    result = await db.execute(query.order_by(Reservation.registered_at.desc()))
    return list(result.scalars().all())


async def list_active_reservations_due_before(
    db: AsyncSession, cutoff: date
) -> List[Reservation]:
    result = await db.execute(
        select(Reservation)
        .where(
            Reservation.status == ReservationStatus.ACTIVE,
            Reservation.active_deadline < cutoff,
        )
        .order_by(Reservation.active_deadline.asc(), Reservation.registered_at.asc())
    )
    return list(result.scalars().all())
