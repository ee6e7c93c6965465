from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class BorrowerCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=3, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\d{10,11}$")


class BorrowerResponse(BaseModel):
    id: str
    full_name: str
    phone: Optional[str]
    account_id: str
    created_at: datetime

    model_config = {"from_attributes": True}
