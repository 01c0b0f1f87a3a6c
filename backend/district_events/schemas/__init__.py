from district_events.schemas.user import (
    UserLogin, UserResponse, Token, InviteCreate, InviteResponse, InviteDetails, InviteAccept,
)
from district_events.schemas.church import ChurchCreate, ChurchResponse
from district_events.schemas.event import (
    EventCreate, EventUpdate, CapacityUpdate, PublishUpdate, EventResponse, EventListResponse,
)
from district_events.schemas.registration import (
    AttendeeDetails, RegistrationCreate, RegistrationResponse, AdminRegistrationResponse,
)

__all__ = [
    "UserLogin", "UserResponse", "Token",
    "InviteCreate", "InviteResponse", "InviteDetails", "InviteAccept",
    "ChurchCreate", "ChurchResponse",
    "EventCreate", "EventUpdate", "CapacityUpdate", "PublishUpdate", "EventResponse", "EventListResponse",
    "AttendeeDetails", "RegistrationCreate", "RegistrationResponse", "AdminRegistrationResponse",
]
