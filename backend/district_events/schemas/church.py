"""
Pydantic schemas for churches.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ChurchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=255)
    pastor: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=500)


class ChurchResponse(ChurchCreate):
    id: str
    created_at: datetime

    model_config = {"from_attributes": True}
