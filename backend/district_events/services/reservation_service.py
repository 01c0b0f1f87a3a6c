"""
Spot reservation service: the only writer of `events.spots_remaining`.

CONCURRENCY STRATEGY: Single Conditional UPDATE
================================================

Problem:
  Two attendees try to register for the last spot simultaneously.
  Both read spots_remaining=1, both decrement to 0, both succeed.
  Result: Overselling.

Solution:
  The check and the decrement are one statement executed by the database:

    UPDATE events SET spots_remaining = spots_remaining - :n
    WHERE id = :event_id
      AND has_unlimited_capacity = false
      AND spots_remaining >= :n

  The row lock taken by the UPDATE serializes concurrent writers on the same
  event; whichever statement runs second re-evaluates the WHERE clause
  against the committed value and matches zero rows. No version column and
  no retry loop are needed because nothing is read before the write.

  Release is the mirror image, clamped at capacity so a duplicated release
  (crash and retry of a compensation) cannot push the counter past the
  CHECK constraint.

  The caller owns the transaction: these functions never commit. The
  registration workflow commits a reservation on its own so the spot is
  held before the ledger insert starts; cancellation and the sweeper commit
  the release together with the status change that guards it.
"""

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.exceptions import EventNotFound, InvalidArgument
from district_events.core.logging import get_logger
from district_events.core.metrics import record_reservation
from district_events.models.event import Event

logger = get_logger(__name__)


def _check_ticket_count(num_tickets: int) -> None:
    if isinstance(num_tickets, bool) or not isinstance(num_tickets, int) or num_tickets < 1:
        raise InvalidArgument(f"Ticket count must be a positive integer, got {num_tickets!r}")


async def _is_unlimited(db: AsyncSession, event_id: str) -> bool:
    """Resolve why a conditional update matched nothing."""
    result = await db.execute(
        select(Event.has_unlimited_capacity).where(Event.id == event_id)
    )
    unlimited = result.scalar_one_or_none()
    if unlimited is None:
        raise EventNotFound(event_id)
    return bool(unlimited)


async def reserve_spots(db: AsyncSession, event_id: str, num_tickets: int) -> bool:
    """
    Atomically take `num_tickets` spots from an event.

    Returns True when granted (always for unlimited events), False when not
    enough spots remain. A rejected reservation changes nothing.
    """
    _check_ticket_count(num_tickets)

    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.has_unlimited_capacity.is_(False),
            Event.spots_remaining >= num_tickets,
        )
        .values(spots_remaining=Event.spots_remaining - num_tickets)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 1:
        record_reservation("granted")
        logger.info("spots_reserved", event_id=event_id, tickets=num_tickets)
        return True

    if await _is_unlimited(db, event_id):
        record_reservation("unlimited")
        return True

    record_reservation("rejected")
    logger.info("spots_unavailable", event_id=event_id, requested=num_tickets)
    return False


async def release_spots(db: AsyncSession, event_id: str, num_tickets: int) -> None:
    """
    Return `num_tickets` spots to an event, never exceeding its capacity.
    No-op for unlimited events.
    """
    _check_ticket_count(num_tickets)

    restored = Event.spots_remaining + num_tickets
    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.has_unlimited_capacity.is_(False),
        )
        .values(
            spots_remaining=case(
                (restored > Event.capacity, Event.capacity),
                else_=restored,
            )
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        # Raises for an unknown event; unlimited events have nothing to return.
        await _is_unlimited(db, event_id)
        return

    logger.info("spots_released", event_id=event_id, tickets=num_tickets)
