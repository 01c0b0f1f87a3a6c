"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

OPTIONAL_TEXT_FIELDS = ("description", "image_url", "external_registration_url")
REQUIRED_ON_UPDATE = ("title", "location", "event_date", "is_free")


def blank_to_none(value):
    """Form inputs send "" for an empty optional field."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    location: str = Field(..., min_length=1, max_length=255)
    event_date: datetime
    end_date: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=1000)
    external_registration_url: Optional[str] = Field(None, max_length=1000)

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_text_is_none(cls, value):
        return blank_to_none(value)


class EventCreate(EventBase):
    church_id: str
    capacity: int = Field(default=100, ge=0, le=100000)
    has_unlimited_capacity: bool = False
    is_free: bool = True
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_published: bool = False

    @model_validator(mode="after")
    def check_pricing_and_dates(self):
        if not self.is_free and not self.price:
            raise ValueError("Priced events need a price greater than zero")
        if self.is_free:
            self.price = Decimal("0")
        if self.end_date is not None and self.end_date < self.event_date:
            raise ValueError("end_date must not be before event_date")
        return self


class EventUpdate(BaseModel):
    """
    Descriptive fields only; capacity goes through the capacity endpoint.
    Omitted fields are left alone. Fields the event cannot do without may
    be omitted but not set to null.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    event_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=1000)
    external_registration_url: Optional[str] = Field(None, max_length=1000)
    is_free: Optional[bool] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_text_is_none(cls, value):
        return blank_to_none(value)

    @model_validator(mode="after")
    def check_required_not_null(self):
        cleared = [
            field for field in REQUIRED_ON_UPDATE
            if field in self.model_fields_set and getattr(self, field) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class CapacityUpdate(BaseModel):
    capacity: int = Field(..., ge=0, le=100000)
    has_unlimited_capacity: bool = False


class PublishUpdate(BaseModel):
    is_published: bool


class EventResponse(BaseModel):
    id: str
    church_id: str
    church_name: Optional[str] = None
    title: str
    description: Optional[str]
    location: str
    event_date: datetime
    end_date: Optional[datetime]
    image_url: Optional[str]
    external_registration_url: Optional[str]
    capacity: int
    spots_remaining: int
    has_unlimited_capacity: bool
    is_free: bool
    price: Optional[float]
    is_published: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
