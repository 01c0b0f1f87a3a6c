"""
Pydantic schemas for registration request/response validation.

`AttendeeDetails` is the ledger's validator: the registration workflow runs
it before touching capacity, so bad input never costs a reservation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from district_events.core.config import get_settings

PHONE_PATTERN = r"^[0-9+\-().\s]*$"


class AttendeeDetails(BaseModel):
    attendee_name: str = Field(..., min_length=1, max_length=100)
    attendee_email: EmailStr
    attendee_phone: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    num_tickets: int = Field(default=1, ge=1)

    @field_validator("attendee_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("attendee_email", mode="before")
    @classmethod
    def check_email_length(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if len(value) > 255:
                raise ValueError("Email must be at most 255 characters")
        return value

    @field_validator("attendee_phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("num_tickets")
    @classmethod
    def check_ticket_limit(cls, value):
        limit = get_settings().MAX_TICKETS_PER_REGISTRATION
        if value > limit:
            raise ValueError(f"At most {limit} tickets per registration")
        return value


class RegistrationCreate(AttendeeDetails):
    event_id: str


class RegistrationResponse(BaseModel):
    id: str
    event_id: str
    attendee_name: str
    attendee_email: str
    attendee_phone: Optional[str]
    num_tickets: int
    total_amount: Optional[float]
    registration_status: str
    payment_status: str
    hold_expires_at: Optional[datetime]
    checked_in: bool
    checked_in_at: Optional[datetime]
    confirmation_sent: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminRegistrationResponse(RegistrationResponse):
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None


class CheckInUpdate(BaseModel):
    checked_in: bool


class RegistrationCancelResponse(BaseModel):
    message: str
    registration_id: str
    registration_status: str
    spots_released: int


class SweepResponse(BaseModel):
    released: int
