from district_events.models.church import Church
from district_events.models.user import User, Role
from district_events.models.invite import Invite
from district_events.models.event import Event
from district_events.models.registration import Registration, RegistrationStatus, PaymentStatus

__all__ = [
    "Church", "User", "Role", "Invite", "Event",
    "Registration", "RegistrationStatus", "PaymentStatus",
]
