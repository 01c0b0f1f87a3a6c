"""
Pydantic schemas for admin users, login and invitations.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

RoleName = Literal["county_admin", "church_admin"]


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str]
    role: str
    church_id: Optional[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class InviteCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(None, max_length=100)
    role: RoleName
    church_id: Optional[str] = None

    @model_validator(mode="after")
    def church_required_for_church_admin(self):
        if self.role == "church_admin" and not self.church_id:
            raise ValueError("church_id is required for the church_admin role")
        if self.role == "county_admin":
            self.church_id = None
        return self


class InviteResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str]
    role: str
    church_id: Optional[str]
    expires_at: datetime
    accepted_at: Optional[datetime]
    email_sent: bool = False

    model_config = {"from_attributes": True}


class InviteDetails(BaseModel):
    email: str
    full_name: Optional[str]
    role: str
    church_id: Optional[str]
    expires_at: datetime

    model_config = {"from_attributes": True}


class InviteAccept(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6, max_length=72)
