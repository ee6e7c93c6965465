from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lending.api.v1.dependencies import LibrarianOrAdmin
from lending.api.v1.endpoints.loans import to_loan_response
from lending.api.v1.errors import USER_FACING_ERRORS, to_http_exception
from lending.db.models import Item, ReservationStatus
from lending.db.repository import get_item, list_loans_for_item, list_reservations_for_item
from lending.db.session import get_db
from lending.schemas.item import ItemCreate, ItemUpdate, ItemResponse
from lending.schemas.loan import LoanListResponse
from lending.schemas.reservation import ReservationListResponse
from lending.services.catalog import create_item, update_item

router = APIRouter(prefix="/items", tags=["Items"])


async def _item_or_404(db: AsyncSession, item_id: str) -> Item:
    item = await get_item(db, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@router.post(
    "",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an item",
    description="Add an item to the catalog with all copies available. Requires Librarian or Admin role.",
    responses={
        201: {"description": "Item created successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        422: {"description": "Validation error"},
    },
)
async def create_item_endpoint(
    data: ItemCreate,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await create_item(db, data.title, data.total_copies, current_user.id)


@router.get(
    "/{item_id}",
    response_model=ItemResponse,
    summary="Get item details",
    responses={
        200: {"description": "Item details"},
        404: {"description": "Item not found"},
    },
)
async def get_item_endpoint(
    item_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _item_or_404(db, item_id)


@router.patch(
    "/{item_id}",
    response_model=ItemResponse,
    summary="Update an item",
    description=(
        "Edit an item. Changing `total_copies` recomputes the available copies and hands any "
        "added copies to waiting reservations, oldest first. The total cannot drop below the "
        "copies on loan plus those held for active reservations."
    ),
    responses={
        200: {"description": "Item updated successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Item not found"},
        409: {"description": "New total is below outstanding commitments"},
    },
)
async def update_item_endpoint(
    item_id: str,
    data: ItemUpdate,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        return await update_item(db, item_id, data.model_dump(exclude_unset=True), current_user.id)
    except USER_FACING_ERRORS as e:
        raise to_http_exception(e)


@router.get(
    "/{item_id}/reservations",
    response_model=ReservationListResponse,
    summary="Item reservation queue",
    description=(
        "Reservations for the item in queue order (oldest registration first), "
        "optionally narrowed to one `status`."
    ),
    responses={
        200: {"description": "Reservations for the item"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Item not found"},
    },
)
async def item_reservations_endpoint(
    item_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    reservation_status: ReservationStatus | None = Query(None, alias="status"),
):
    item = await _item_or_404(db, item_id)
    reservations = await list_reservations_for_item(db, item.id, status=reservation_status)
    return ReservationListResponse(items=reservations, total=len(reservations))


@router.get(
    "/{item_id}/loans",
    response_model=LoanListResponse,
    summary="Item loan history",
    description=(
        "Loans of the item, newest first, with base, late and total fees as of today. "
        "`returned` narrows the list to open or returned loans."
    ),
    responses={
        200: {"description": "Loans of the item"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Item not found"},
    },
)
async def item_loans_endpoint(
    item_id: str,
    current_user: LibrarianOrAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    returned: bool | None = Query(None),
):
    item = await _item_or_404(db, item_id)
    loans = await list_loans_for_item(db, item.id, returned=returned)
    return LoanListResponse(items=[to_loan_response(loan) for loan in loans], total=len(loans))
