from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.api.v1.dependencies import AdminOnly, LibrarianOrAdmin
from lending.api.v1.errors import USER_FACING_ERRORS, to_http_exception
from lending.db.repository import get_reservation
from lending.db.session import get_db
from lending.schemas.loan import CredentialRequest
from lending.schemas.reservation import ReservationCreate, ReservationResponse, SweepResponse
from lending.services.reservation import (
    cancel_reservation,
    reserve_item,
    sweep_expired_reservations,
)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve an item",
    description=(
        "Join the item's queue. The reservation starts `active` (a copy is held for two days) "
        "when an unheld copy is free, otherwise `waiting`."
    ),
    responses={
        201: {"description": "Reservation created"},
        403: {"description": "Password not recognised"},
        404: {"description": "Item or borrower not found"},
        409: {"description": "Blocked by a lending rule; `detail.reason` names which one"},
    },
)
async def reserve_endpoint(
    data: ReservationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await reserve_item(db, data.item_id, data.borrower_id, data.password)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Run the expiry sweep",
    description="Expire overdue active reservations now instead of waiting for the daily run. Admin only.",
    responses={
        200: {"description": "Number of reservations expired"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
    },
)
async def sweep_endpoint(
    current_user: AdminOnly,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    expired = await sweep_expired_reservations(db)
    return SweepResponse(expired=len(expired))


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get reservation details",
    responses={
        200: {"description": "Reservation details"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Reservation not found"},
    },
)
async def get_reservation_endpoint(
    reservation_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    reservation = await get_reservation(db, reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return reservation


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    summary="Cancel a reservation",
    description="Cancel a waiting or active reservation; a released hold passes to the next in line.",
    responses={
        200: {"description": "Reservation cancelled"},
        403: {"description": "Password not recognised"},
        404: {"description": "Reservation not found"},
        409: {"description": "Reservation is already fulfilled, expired or cancelled"},
    },
)
async def cancel_endpoint(
    reservation_id: str,
    data: CredentialRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await cancel_reservation(db, reservation_id, data.password)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)
