from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from lending.db.models import ReservationStatus


class ReservationCreate(BaseModel):
    item_id: str
    borrower_id: str
    password: str = Field(..., min_length=1)


class ReservationResponse(BaseModel):
    id: str
    item_id: str
    borrower_id: str
    registered_at: datetime
    status: ReservationStatus
    active_deadline: Optional[date]
    loan_id: Optional[str]

    model_config = {"from_attributes": True}


class ReservationListResponse(BaseModel):
    items: List[ReservationResponse]
    total: int


class SweepResponse(BaseModel):
    expired: int
