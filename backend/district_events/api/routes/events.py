"""
Event endpoints with Redis caching on the public listing.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.logging import get_logger
from district_events.core.security import ensure_can_manage_church, get_current_user
from district_events.db.session import get_db
from district_events.models.user import User
from district_events.schemas.event import (
    CapacityUpdate,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    PublishUpdate,
)
from district_events.services import event_service
from district_events.services.cache_service import (
    get_cached_events,
    invalidate_event_cache,
    set_cached_events,
)
from district_events.services.church_service import get_church

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    Published upcoming events, soonest first.
    Results are cached in Redis; any registration or admin edit invalidates them.
    """
    cached = await get_cached_events(page, page_size)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await event_service.list_public_events(db, page, page_size)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_events(page, page_size, response_data)

    return EventListResponse(**response_data)


@router.get("/manage", response_model=list[EventResponse])
async def list_manageable_events(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every event the admin can edit, drafts included."""
    return await event_service.list_admin_events(db, user)


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an event for a church the admin manages."""
    ensure_can_manage_church(user, event_data.church_id)
    await get_church(db, event_data.church_id)

    event = await event_service.create_event(db, event_data)
    await invalidate_event_cache()
    return event


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a published event. Not cached (shows live spots remaining)."""
    return await event_service.get_public_event(db, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: str,
    event_data: EventUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_manage_church(user, await event_service.ensure_event_church(db, event_id))
    event = await event_service.update_event(db, event_id, event_data)
    await invalidate_event_cache()
    return event


@router.put("/{event_id}/capacity", response_model=EventResponse)
async def update_capacity_endpoint(
    event_id: str,
    change: CapacityUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change capacity. Returns 409 when the new capacity is smaller than the
    number of spots already taken.
    """
    ensure_can_manage_church(user, await event_service.ensure_event_church(db, event_id))
    event = await event_service.update_capacity(db, event_id, change)
    await invalidate_event_cache()
    return event


@router.put("/{event_id}/publish", response_model=EventResponse)
async def publish_event_endpoint(
    event_id: str,
    update: PublishUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_manage_church(user, await event_service.ensure_event_church(db, event_id))
    event = await event_service.set_published(db, event_id, update.is_published)
    await invalidate_event_cache()
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_can_manage_church(user, await event_service.ensure_event_church(db, event_id))
    await event_service.delete_event(db, event_id)
    await invalidate_event_cache()
