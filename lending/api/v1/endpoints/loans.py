from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.api.v1.dependencies import LibrarianOrAdmin
from lending.api.v1.errors import USER_FACING_ERRORS, to_http_exception
from lending.db.models import Loan
from lending.db.repository import get_loan
from lending.db.session import get_db
from lending.schemas.loan import BorrowRequest, CredentialRequest, LoanResponse
from lending.services.fees import fee_breakdown
from lending.services.loan import borrow_item, renew_loan, return_loan

router = APIRouter(prefix="/loans", tags=["Loans"])

CONFLICT_RESPONSE = {
    "description": "Blocked by a lending rule; `detail.reason` names which one",
}


def to_loan_response(loan: Loan) -> LoanResponse:
    """Loan fields plus the fees owed as of today (or as of its return)."""
    response = LoanResponse.model_validate(loan)
    fees = fee_breakdown(loan)
    response.base_fee = fees.base_fee
    response.late_fee = fees.late_fee
    response.total_fee = fees.total_fee
    return response


@router.post(
    "",
    response_model=LoanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Borrow an item",
    description=(
        "Lend one copy of an item to a borrower, confirmed with the borrower's password. "
        "A borrower with an active reservation collects the copy held for them."
    ),
    responses={
        201: {"description": "Loan created"},
        403: {"description": "Password not recognised"},
        404: {"description": "Item or borrower not found"},
        409: CONFLICT_RESPONSE,
    },
)
async def borrow_endpoint(
    data: BorrowRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        loan = await borrow_item(db, data.item_id, data.borrower_id, data.password)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)
    return to_loan_response(loan)


@router.get(
    "/{loan_id}",
    response_model=LoanResponse,
    summary="Get loan details",
    description="Retrieve a loan together with its base, late and total fees.",
    responses={
        200: {"description": "Loan details"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Loan not found"},
    },
)
async def get_loan_endpoint(
    loan_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    loan = await get_loan(db, loan_id)
    if not loan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    return to_loan_response(loan)


@router.post(
    "/{loan_id}/return",
    response_model=LoanResponse,
    summary="Return a loan",
    description="Check the copy back in; the oldest waiting reservation is offered the copy.",
    responses={
        200: {"description": "Loan returned"},
        403: {"description": "Password not recognised"},
        404: {"description": "Loan not found"},
        409: CONFLICT_RESPONSE,
    },
)
async def return_endpoint(
    loan_id: str,
    data: CredentialRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        loan = await return_loan(db, loan_id, data.password)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)
    return to_loan_response(loan)


@router.post(
    "/{loan_id}/renew",
    response_model=LoanResponse,
    summary="Renew a loan",
    description=(
        "Extend the due date by one loan period. Only allowed on the due date itself, "
        "at most three times, and only while nobody is waiting for the item."
    ),
    responses={
        200: {"description": "Loan renewed"},
        403: {"description": "Password not recognised"},
        404: {"description": "Loan not found"},
        409: CONFLICT_RESPONSE,
    },
)
async def renew_endpoint(
    loan_id: str,
    data: CredentialRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        loan = await renew_loan(db, loan_id, data.password)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)
    return to_loan_response(loan)
