from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field


class BorrowRequest(BaseModel):
    item_id: str
    borrower_id: str
    password: str = Field(..., min_length=1)


class CredentialRequest(BaseModel):
    """Body for actions the borrower confirms with their password."""

    password: str = Field(..., min_length=1)


class LoanResponse(BaseModel):
    id: str
    borrower_id: str
    item_id: str
    reservation_id: Optional[str]
    start_date: date
    due_date: date
    return_date: Optional[date]
    returned: bool
    renewal_count: int
    base_fee: float = 0.0
    late_fee: float = 0.0
    total_fee: float = 0.0

    model_config = {"from_attributes": True}


class LoanListResponse(BaseModel):
    items: List[LoanResponse]
    total: int
