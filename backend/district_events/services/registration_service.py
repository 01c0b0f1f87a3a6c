"""
Registration workflow: reserve, persist, notify.

WORKFLOW
========

  Validating -> Reserving -> Persisting -> Notifying (free events) -> Done

1. Attendee input is validated before capacity is touched, so bad input
   never costs a reservation.
2. Spots are reserved and committed in their own transaction. A rejected
   reservation ends the attempt with CapacityExhausted; nothing was taken,
   nothing needs undoing.
3. The ledger row is inserted in a second transaction. If that fails, the
   same ticket count is released in a third transaction (the compensating
   action) and the caller gets PersistenceFailure, which is safe to retry.
4. Confirmed registrations get a confirmation email. Email failure is logged
   and leaves confirmation_sent = false; it never releases spots.

Why not one transaction for reserve + insert?
  It would be equally correct here since both tables share a database. The
  separate steps keep the reservation service usable on its own (the
  sweeper and cancellation call it too) and keep the "reserved but not yet
  recorded" window down to the single insert that follows it. The cost is
  that compensation must run on every persist failure, which is what
  `_release_reserved` does.
"""

import time
from typing import Any, Mapping, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from district_events.core.exceptions import (
    CapacityExhausted,
    DistrictEventsError,
    PersistenceFailure,
    RegistrationStateError,
    RegistrationValidationError,
)
from district_events.core.logging import get_logger
from district_events.core.metrics import (
    record_registration_attempt,
    record_release,
    registration_latency,
)
from district_events.models.event import Event
from district_events.models.registration import Registration, RegistrationStatus
from district_events.schemas.registration import AttendeeDetails
from district_events.services import event_service, ledger_service
from district_events.services.interfaces.notification import ConfirmationMessage, NotificationSink
from district_events.services.reservation_service import release_spots, reserve_spots

logger = get_logger(__name__)


async def register_attendee(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: NotificationSink,
    event_id: str,
    attendee: Union[AttendeeDetails, Mapping[str, Any]],
) -> Registration:
    """
    Run one registration attempt end to end.

    Raises:
        RegistrationValidationError: attendee input rejected, nothing reserved
        EventNotFound / RegistrationClosed: event cannot take registrations
        CapacityExhausted: not enough spots
        PersistenceFailure: insert failed, reserved spots were released
    """
    start = time.perf_counter()
    try:
        registration = await _run_workflow(session_factory, notifier, event_id, attendee)
    except RegistrationValidationError:
        record_registration_attempt("invalid")
        raise
    except CapacityExhausted:
        record_registration_attempt("sold_out")
        raise
    except PersistenceFailure:
        record_registration_attempt("persistence_failure")
        raise
    except DistrictEventsError:
        record_registration_attempt("closed")
        raise
    finally:
        registration_latency.observe(time.perf_counter() - start)

    record_registration_attempt("success")
    return registration


async def _run_workflow(session_factory, notifier, event_id, attendee) -> Registration:
    details = ledger_service.validate_attendee(attendee)

    async with session_factory() as db:
        event = await event_service.get_registrable_event(db, event_id)
        event_id = event.id
        granted = await reserve_spots(db, event_id, details.num_tickets)
        if not granted:
            # Rollback expires `event`; only event_id is safe to read below.
            await db.rollback()
            logger.info(
                "registration_sold_out",
                event_id=event_id,
                requested=details.num_tickets,
            )
            raise CapacityExhausted(event_id, details.num_tickets)
        await db.commit()

    try:
        async with session_factory() as db:
            registration = await ledger_service.create_registration(db, event, details)
            await db.commit()
    except Exception as exc:
        logger.error(
            "registration_persist_failed",
            event_id=event.id,
            tickets=details.num_tickets,
            error=str(exc),
        )
        await _release_reserved(session_factory, event.id, details.num_tickets)
        raise PersistenceFailure(cause=exc) from exc

    if registration.registration_status == RegistrationStatus.CONFIRMED:
        await _send_confirmation(session_factory, notifier, registration, event)

    return registration


async def _release_reserved(session_factory, event_id: str, num_tickets: int) -> None:
    """Compensating action for a reservation whose ledger insert failed."""
    try:
        async with session_factory() as db:
            await release_spots(db, event_id, num_tickets)
            await db.commit()
    except Exception as exc:
        # Spots stay taken until an operator reconciles the event.
        logger.critical(
            "compensating_release_failed",
            event_id=event_id,
            tickets=num_tickets,
            error=str(exc),
        )
        return
    record_release("compensation", num_tickets)
    logger.warning("compensating_release_applied", event_id=event_id, tickets=num_tickets)


def build_confirmation(registration: Registration, event: Event) -> ConfirmationMessage:
    return ConfirmationMessage(
        registration_id=registration.id,
        attendee_name=registration.attendee_name,
        attendee_email=registration.attendee_email,
        event_title=event.title,
        event_date=event.event_date,
        event_location=event.location,
        num_tickets=registration.num_tickets,
        total_amount=registration.total_amount,
    )


async def _send_confirmation(session_factory, notifier: NotificationSink, registration: Registration, event: Event) -> None:
    try:
        sent = await notifier.send_confirmation(build_confirmation(registration, event))
    except Exception as exc:
        logger.error(
            "confirmation_notification_failed",
            registration_id=registration.id,
            error=str(exc),
        )
        return

    if not sent:
        logger.warning("confirmation_not_delivered", registration_id=registration.id)
        return

    try:
        async with session_factory() as db:
            await ledger_service.mark_confirmation_sent(db, registration.id)
            await db.commit()
    except Exception as exc:
        logger.error(
            "confirmation_flag_update_failed",
            registration_id=registration.id,
            error=str(exc),
        )
        return
    registration.confirmation_sent = True


async def cancel_registration(db: AsyncSession, registration_id: str) -> Registration:
    """
    Cancel a registration and give its spots back, in one transaction.
    Only the call that actually flips the status releases anything.
    """
    registration = await ledger_service.cancel_registration(db, registration_id)
    if registration is None:
        # Raises RegistrationNotFound for unknown ids.
        await ledger_service.get_registration(db, registration_id)
        raise RegistrationStateError("Registration is already cancelled")

    await release_spots(db, registration.event_id, registration.num_tickets)
    await db.commit()

    record_release("cancellation", registration.num_tickets)
    logger.info(
        "registration_cancelled",
        registration_id=registration.id,
        event_id=registration.event_id,
        spots_released=registration.num_tickets,
    )
    return registration
