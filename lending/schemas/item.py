from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    total_copies: int = Field(1, ge=0)


class ItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    total_copies: Optional[int] = Field(None, ge=0)


class ItemResponse(BaseModel):
    id: str
    title: str
    total_copies: int
    available_copies: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
