"""
Registration endpoints: the public signup and the admin ledger views.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from district_events.core.logging import get_logger
from district_events.core.security import ensure_can_manage_church, get_current_user, require_roles
from district_events.db.session import get_db, get_session_factory
from district_events.models.registration import Registration
from district_events.models.user import Role, User
from district_events.schemas.registration import (
    AdminRegistrationResponse,
    CheckInUpdate,
    RegistrationCancelResponse,
    RegistrationCreate,
    RegistrationResponse,
    SweepResponse,
)
from district_events.services import event_service, ledger_service, registration_service
from district_events.services.cache_service import invalidate_event_cache
from district_events.services.hold_sweeper import sweep_expired_holds
from district_events.services.interfaces.notification import NotificationSink
from district_events.services.strategy_factory import get_notifier

logger = get_logger(__name__)
router = APIRouter(prefix="/registrations", tags=["Registrations"])


def _admin_view(registration: Registration) -> AdminRegistrationResponse:
    view = AdminRegistrationResponse.model_validate(registration)
    if registration.event is not None:
        view.event_title = registration.event.title
        view.event_date = registration.event.event_date
    return view


@router.post("/", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration_data: RegistrationCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    notifier: NotificationSink = Depends(get_notifier),
):
    """
    Register an attendee for an event.

    Spots are reserved with a single conditional update, so concurrent
    requests for the last spots cannot both succeed. Returns 409 when the
    event is sold out.
    """
    attendee = registration_data.model_dump(exclude={"event_id"})
    registration = await registration_service.register_attendee(
        session_factory, notifier, registration_data.event_id, attendee
    )
    # spots_remaining on the listing changed
    await invalidate_event_cache()
    return registration


@router.get("/", response_model=list[AdminRegistrationResponse])
async def list_registrations(
    event_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Registrations visible to the admin, newest first."""
    if event_id:
        church_id = await event_service.ensure_event_church(db, event_id)
        ensure_can_manage_church(user, church_id)

    registrations = await ledger_service.list_registrations(
        db,
        event_id=event_id,
        church_id=None if user.is_county_admin else user.church_id,
        search=search,
    )
    return [_admin_view(r) for r in registrations]


@router.put("/{registration_id}/check-in", response_model=AdminRegistrationResponse)
async def check_in(
    registration_id: str,
    update: CheckInUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark an attendee as arrived (or undo it)."""
    registration = await ledger_service.get_registration(db, registration_id)
    ensure_can_manage_church(user, registration.event.church_id)

    await ledger_service.set_checked_in(db, registration_id, update.checked_in)
    await db.commit()
    return _admin_view(await ledger_service.get_registration(db, registration_id))


@router.delete("/{registration_id}", response_model=RegistrationCancelResponse)
async def cancel_registration(
    registration_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a registration and release its spots back to the event."""
    registration = await ledger_service.get_registration(db, registration_id)
    ensure_can_manage_church(user, registration.event.church_id)

    registration = await registration_service.cancel_registration(db, registration_id)
    await invalidate_event_cache()
    return RegistrationCancelResponse(
        message="Registration cancelled successfully",
        registration_id=registration.id,
        registration_status=registration.registration_status,
        spots_released=registration.num_tickets,
    )


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(
    user: User = Depends(require_roles(Role.COUNTY_ADMIN)),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Release expired payment holds now instead of waiting for the next tick."""
    released = await sweep_expired_holds(session_factory)
    if released:
        await invalidate_event_cache()
    logger.info("manual_sweep", user_id=user.id, released=released)
    return SweepResponse(released=released)
