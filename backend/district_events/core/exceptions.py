"""
Domain errors for the registration core and their HTTP mapping.

Services raise these instead of HTTPException so the reservation, ledger and
sweeper code stays usable outside a request (the background sweeper, tests,
scripts). The handlers registered in main.py turn them into JSON responses.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from district_events.core.logging import get_logger

logger = get_logger(__name__)


class DistrictEventsError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class InvalidArgument(DistrictEventsError):
    code = "invalid_argument"


class EventNotFound(DistrictEventsError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "event_not_found"

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found", event_id=event_id)
        self.event_id = event_id


class RegistrationNotFound(DistrictEventsError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "registration_not_found"

    def __init__(self, registration_id: str):
        super().__init__(f"Registration {registration_id} not found")
        self.registration_id = registration_id


class RegistrationClosed(DistrictEventsError):
    """Event exists but does not take registrations through this API."""

    code = "registration_closed"


class CapacityExhausted(DistrictEventsError):
    status_code = status.HTTP_409_CONFLICT
    code = "sold_out"

    def __init__(self, event_id: str, requested: int):
        super().__init__("Not enough spots available", event_id=event_id, requested=requested)
        self.event_id = event_id
        self.requested = requested


class CapacityConflict(DistrictEventsError):
    """Capacity change would drop below the tickets already held."""

    status_code = status.HTTP_409_CONFLICT
    code = "capacity_conflict"


class RegistrationValidationError(DistrictEventsError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"

    def __init__(self, errors: list[dict]):
        super().__init__("Invalid attendee details")
        self.errors = errors

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "errors": self.errors}


class PersistenceFailure(DistrictEventsError):
    """The ledger insert failed after spots were reserved; spots were released."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "registration_failed"

    def __init__(self, message: str = "Registration could not be saved. Please try again.",
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.__cause__ = cause


class RegistrationStateError(DistrictEventsError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class InviteUnavailable(DistrictEventsError):
    status_code = status.HTTP_410_GONE
    code = "invite_unavailable"


async def domain_error_handler(request: Request, exc: DistrictEventsError) -> JSONResponse:
    logger.info(
        "domain_error",
        code=exc.code,
        status_code=exc.status_code,
        detail=exc.message,
        **exc.context,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DistrictEventsError, domain_error_handler)
