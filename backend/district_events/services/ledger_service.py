"""
Registration ledger: validation and durable storage of attendee
registrations.

The ledger never touches capacity. Reserving before an insert and releasing
after a failed insert is the registration workflow's job; cancellation here
flips the status and hands back the ticket count so the caller can release
within the same transaction.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.config import get_settings
from district_events.core.exceptions import (
    RegistrationNotFound,
    RegistrationStateError,
    RegistrationValidationError,
)
from district_events.core.logging import get_logger
from district_events.db.base import utcnow
from district_events.models.event import Event
from district_events.models.registration import PaymentStatus, Registration, RegistrationStatus
from district_events.schemas.registration import AttendeeDetails

logger = get_logger(__name__)
settings = get_settings()


def validate_attendee(data: Union[AttendeeDetails, Mapping[str, Any]]) -> AttendeeDetails:
    """Validate attendee input, collecting one message per offending field."""
    if isinstance(data, AttendeeDetails):
        return data
    try:
        return AttendeeDetails.model_validate(dict(data))
    except ValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "__root__",
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        raise RegistrationValidationError(errors) from exc


def compute_total(event: Event, num_tickets: int) -> Decimal:
    if event.is_free:
        return Decimal("0")
    return Decimal(event.price or 0) * num_tickets


async def create_registration(
    db: AsyncSession,
    event: Event,
    attendee: AttendeeDetails,
) -> Registration:
    """
    Insert a registration for spots that were already reserved.
    Free events are confirmed immediately; priced events start a payment
    hold that the sweeper reclaims once it expires.
    """
    if event.is_free:
        payment_status = PaymentStatus.FREE
        registration_status = RegistrationStatus.CONFIRMED
        hold_expires_at = None
    else:
        payment_status = PaymentStatus.PENDING
        registration_status = RegistrationStatus.PENDING
        hold_expires_at = utcnow() + timedelta(minutes=settings.HOLD_TTL_MINUTES)

    registration = Registration(
        event_id=event.id,
        attendee_name=attendee.attendee_name,
        attendee_email=str(attendee.attendee_email),
        attendee_phone=attendee.attendee_phone,
        num_tickets=attendee.num_tickets,
        total_amount=compute_total(event, attendee.num_tickets),
        payment_status=payment_status,
        registration_status=registration_status,
        hold_expires_at=hold_expires_at,
    )
    db.add(registration)
    await db.flush()

    logger.info(
        "registration_created",
        registration_id=registration.id,
        event_id=event.id,
        tickets=registration.num_tickets,
        status=registration_status,
    )
    return registration


async def get_registration(db: AsyncSession, registration_id: str) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if registration is None:
        raise RegistrationNotFound(registration_id)
    return registration


async def mark_confirmation_sent(db: AsyncSession, registration_id: str) -> None:
    await db.execute(
        update(Registration)
        .where(Registration.id == registration_id)
        .values(confirmation_sent=True)
        .execution_options(synchronize_session=False)
    )


async def cancel_registration(
    db: AsyncSession,
    registration_id: str,
    only_if_status: Optional[str] = None,
    expired_before=None,
) -> Optional[Registration]:
    """
    Move a registration to `cancelled` if it is not cancelled already.

    Returns the registration when this call performed the transition, None
    when another caller got there first. Only the caller that gets a
    registration back may release its spots, which is what keeps releases
    to one per registration.
    """
    conditions = [
        Registration.id == registration_id,
        Registration.registration_status != RegistrationStatus.CANCELLED,
    ]
    if only_if_status is not None:
        conditions.append(Registration.registration_status == only_if_status)
    if expired_before is not None:
        conditions.append(Registration.hold_expires_at < expired_before)

    result = await db.execute(
        update(Registration)
        .where(*conditions)
        .values(registration_status=RegistrationStatus.CANCELLED, hold_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return await get_registration(db, registration_id)


async def set_checked_in(db: AsyncSession, registration_id: str, checked_in: bool) -> Registration:
    registration = await get_registration(db, registration_id)
    if registration.registration_status == RegistrationStatus.CANCELLED:
        raise RegistrationStateError("Cancelled registrations cannot be checked in")

    registration.checked_in = checked_in
    registration.checked_in_at = utcnow() if checked_in else None
    await db.flush()

    logger.info("registration_check_in", registration_id=registration_id, checked_in=checked_in)
    return registration


async def list_registrations(
    db: AsyncSession,
    event_id: Optional[str] = None,
    church_id: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Registration]:
    """Admin listing, newest first, optionally scoped to an event or church."""
    query = select(Registration).join(Registration.event)

    if event_id:
        query = query.where(Registration.event_id == event_id)
    if church_id:
        query = query.where(Event.church_id == church_id)
    if search:
        term = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Registration.attendee_name).like(term),
                func.lower(Registration.attendee_email).like(term),
                func.lower(Registration.attendee_phone).like(term),
            )
        )

    result = await db.execute(query.order_by(Registration.created_at.desc()))
    return list(result.unique().scalars().all())


async def count_active_tickets(db: AsyncSession, event_id: str) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Registration.num_tickets), 0)).where(
            Registration.event_id == event_id,
            Registration.registration_status != RegistrationStatus.CANCELLED,
        )
    )
    return int(result.scalar_one())


async def find_expired_holds(db: AsyncSession, now, limit: int) -> list[tuple[str, str, int]]:
    """(registration_id, event_id, num_tickets) for pending holds past expiry."""
    result = await db.execute(
        select(Registration.id, Registration.event_id, Registration.num_tickets)
        .where(
            Registration.registration_status == RegistrationStatus.PENDING,
            Registration.hold_expires_at.is_not(None),
            Registration.hold_expires_at < now,
        )
        .order_by(Registration.hold_expires_at.asc())
        .limit(limit)
    )
    return [tuple(row) for row in result.all()]
