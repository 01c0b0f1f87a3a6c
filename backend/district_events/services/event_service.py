"""
Event service: admin CRUD, the public read path, and capacity changes.

Capacity changes follow a reject-if-oversold policy. Tickets already held
(capacity - spots_remaining) stay held; the new capacity must be able to
hold them, otherwise the change is refused and nothing is written.
"""

from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.exceptions import (
    CapacityConflict,
    EventNotFound,
    RegistrationClosed,
    RegistrationStateError,
)
from district_events.core.logging import get_logger
from district_events.db.base import as_utc, utcnow
from district_events.models.event import Event
from district_events.models.registration import Registration
from district_events.models.user import User
from district_events.schemas.event import CapacityUpdate, EventCreate, EventUpdate
from district_events.services import ledger_service

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new event with every spot available."""
    event = Event(
        church_id=event_data.church_id,
        title=event_data.title,
        description=event_data.description,
        location=event_data.location,
        event_date=as_utc(event_data.event_date),
        end_date=as_utc(event_data.end_date) if event_data.end_date else None,
        image_url=event_data.image_url,
        external_registration_url=event_data.external_registration_url,
        capacity=event_data.capacity,
        spots_remaining=event_data.capacity,
        has_unlimited_capacity=event_data.has_unlimited_capacity,
        is_free=event_data.is_free,
        price=event_data.price,
        is_published=event_data.is_published,
    )
    db.add(event)
    await db.commit()

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        capacity=None if event.has_unlimited_capacity else event.capacity,
    )
    return await get_event(db, event.id)


async def get_event(db: AsyncSession, event_id: str) -> Event:
    """Get a single event by ID, published or not."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise EventNotFound(event_id)
    return event


async def get_public_event(db: AsyncSession, event_id: str) -> Event:
    """Unpublished events do not exist for the public."""
    event = await get_event(db, event_id)
    if not event.is_published:
        raise EventNotFound(event_id)
    return event


async def get_registrable_event(db: AsyncSession, event_id: str) -> Event:
    """
    Gate in front of the registration workflow: only published, upcoming
    events without an external signup link accept registrations.
    """
    event = await get_public_event(db, event_id)
    if as_utc(event.event_date) < utcnow():
        raise RegistrationClosed("This event has already taken place", event_id=event_id)
    if not event.accepts_registrations:
        raise RegistrationClosed(
            "This event uses external registration",
            event_id=event_id,
            external_registration_url=event.external_registration_url,
        )
    return event


async def list_public_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Event], int]:
    """
    Published events that have not started yet, soonest first.
    Uses the ix_events_published_date composite index.
    """
    query = select(Event).where(
        Event.is_published.is_(True),
        Event.event_date >= utcnow(),
    )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.event_date.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    return list(result.scalars().all()), total


async def list_admin_events(db: AsyncSession, user: User) -> list[Event]:
    """All events the admin may manage, published or not."""
    query = select(Event).order_by(Event.event_date.asc())
    if not user.is_county_admin:
        query = query.where(Event.church_id == user.church_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_event(db: AsyncSession, event_id: str, event_data: EventUpdate) -> Event:
    event = await get_event(db, event_id)
    changes = event_data.model_dump(exclude_unset=True)

    for field in ("event_date", "end_date"):
        if changes.get(field) is not None:
            changes[field] = as_utc(changes[field])
    is_free = changes.get("is_free", event.is_free)
    if is_free:
        if "is_free" in changes or "price" in changes:
            changes["price"] = 0
    elif not changes.get("price", event.price):
        raise RegistrationStateError("Priced events need a price greater than zero")

    event_date = changes.get("event_date", as_utc(event.event_date))
    end_date = changes.get("end_date", as_utc(event.end_date) if event.end_date else None)
    if end_date is not None and end_date < event_date:
        raise RegistrationStateError("end_date must not be before event_date")

    for field, value in changes.items():
        setattr(event, field, value)
    await db.commit()

    logger.info("event_updated", event_id=event_id, fields=sorted(changes))
    return await get_event(db, event_id)


async def set_published(db: AsyncSession, event_id: str, is_published: bool) -> Event:
    event = await get_event(db, event_id)
    event.is_published = is_published
    await db.commit()
    logger.info("event_publish_toggled", event_id=event_id, is_published=is_published)
    return await get_event(db, event_id)


async def update_capacity(db: AsyncSession, event_id: str, change: CapacityUpdate) -> Event:
    """
    Apply a capacity change without losing track of held tickets.

    - finite -> finite: one conditional UPDATE shifts spots_remaining by the
      capacity delta, guarded by held <= new capacity
    - unlimited -> finite: held tickets are counted from the ledger
    - finite -> unlimited: the counter is parked at capacity
    """
    event = await get_event(db, event_id)
    new_capacity = change.capacity

    if change.has_unlimited_capacity:
        await db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(capacity=new_capacity, spots_remaining=new_capacity, has_unlimited_capacity=True)
            .execution_options(synchronize_session=False)
        )
    elif event.has_unlimited_capacity:
        held = await ledger_service.count_active_tickets(db, event_id)
        if held > new_capacity:
            raise CapacityConflict(
                f"{held} tickets are already registered; capacity cannot be {new_capacity}",
                event_id=event_id,
            )
        await db.execute(
            update(Event)
            .where(Event.id == event_id, Event.has_unlimited_capacity.is_(True))
            .values(
                capacity=new_capacity,
                spots_remaining=new_capacity - held,
                has_unlimited_capacity=False,
            )
            .execution_options(synchronize_session=False)
        )
    else:
        result = await db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.has_unlimited_capacity.is_(False),
                Event.capacity - Event.spots_remaining <= new_capacity,
            )
            .values(
                spots_remaining=Event.spots_remaining + (new_capacity - Event.capacity),
                capacity=new_capacity,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            current = await get_event(db, event_id)
            held = current.capacity - current.spots_remaining
            raise CapacityConflict(
                f"{held} spots are already taken; capacity cannot be {new_capacity}",
                event_id=event_id,
            )

    await db.commit()
    updated = await get_event(db, event_id)
    logger.info(
        "event_capacity_changed",
        event_id=event_id,
        capacity=updated.capacity,
        spots_remaining=updated.spots_remaining,
        unlimited=updated.has_unlimited_capacity,
    )
    return updated


async def delete_event(db: AsyncSession, event_id: str) -> None:
    event = await get_event(db, event_id)
    active = await ledger_service.count_active_tickets(db, event_id)
    if active:
        raise RegistrationStateError(
            "Cancel the event's registrations before deleting it",
            event_id=event_id,
        )
    await db.execute(delete(Registration).where(Registration.event_id == event.id))
    await db.execute(delete(Event).where(Event.id == event.id))
    await db.commit()
    logger.info("event_deleted", event_id=event_id)


async def ensure_event_church(db: AsyncSession, event_id: str) -> Optional[str]:
    """church_id of an event, for role checks."""
    result = await db.execute(select(Event.church_id).where(Event.id == event_id))
    church_id = result.scalar_one_or_none()
    if church_id is None:
        raise EventNotFound(event_id)
    return church_id
