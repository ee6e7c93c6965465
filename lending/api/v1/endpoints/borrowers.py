from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.api.v1.dependencies import LibrarianOrAdmin
from lending.api.v1.endpoints.loans import to_loan_response
from lending.db.models import Borrower, ReservationStatus
from lending.db.repository import (
    get_borrower,
    list_loans_for_borrower,
    list_reservations_for_borrower,
)
from lending.db.session import get_db
from lending.schemas.borrower import BorrowerCreate, BorrowerResponse
from lending.schemas.loan import LoanListResponse
from lending.schemas.reservation import ReservationListResponse
from lending.services.borrower import create_borrower

router = APIRouter(prefix="/borrowers", tags=["Borrowers"])


async def _borrower_or_404(db: AsyncSession, borrower_id: str) -> Borrower:
    borrower = await get_borrower(db, borrower_id)
    if not borrower:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Borrower not found")
    return borrower


@router.post(
    "",
    response_model=BorrowerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a borrower",
    description="Create a borrower and the member account whose password confirms their loans and reservations.",
    responses={
        201: {"description": "Borrower created"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        409: {"description": "Email already registered"},
        422: {"description": "Validation error"},
    },
)
async def create_borrower_endpoint(
    data: BorrowerCreate,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await create_borrower(
            db, data.email, data.password, data.full_name, data.phone, current_user.id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get(
    "/{borrower_id}",
    response_model=BorrowerResponse,
    summary="Get borrower details",
    responses={
        200: {"description": "Borrower details"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Borrower not found"},
    },
)
async def get_borrower_endpoint(
    borrower_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _borrower_or_404(db, borrower_id)


@router.get(
    "/{borrower_id}/loans",
    response_model=LoanListResponse,
    summary="Borrower loan history",
    description=(
        "Loans of the borrower, newest first, with fees as of today. "
        "`returned` narrows the list to open or returned loans."
    ),
    responses={
        200: {"description": "Loans"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Borrower not found"},
    },
)
async def borrower_loans_endpoint(
    borrower_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    returned: bool | None = Query(None),
):
    borrower = await _borrower_or_404(db, borrower_id)
    loans = await list_loans_for_borrower(db, borrower.id, returned=returned)
    return LoanListResponse(items=[to_loan_response(loan) for loan in loans], total=len(loans))


@router.get(
    "/{borrower_id}/reservations",
    response_model=ReservationListResponse,
    summary="Borrower reservations",
    responses={
        200: {"description": "Reservations"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Borrower not found"},
    },
)
async def borrower_reservations_endpoint(
    borrower_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    reservation_status: ReservationStatus | None = Query(None, alias="status"),
):
    borrower = await _borrower_or_404(db, borrower_id)
    reservations = await list_reservations_for_borrower(db, borrower.id, status=reservation_status)
    return ReservationListResponse(items=reservations, total=len(reservations))
