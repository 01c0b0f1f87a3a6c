"""
Church service: the hosts events belong to.
"""

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.logging import get_logger
from district_events.models.church import Church
from district_events.schemas.church import ChurchCreate

logger = get_logger(__name__)


async def create_church(db: AsyncSession, church_data: ChurchCreate) -> Church:
    existing = await db.execute(select(Church.id).where(Church.name == church_data.name))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A church with this name already exists",
        )

    church = Church(**church_data.model_dump())
    db.add(church)
    await db.commit()
    logger.info("church_created", church_id=church.id, name=church.name)
    return church


async def get_church(db: AsyncSession, church_id: str) -> Church:
    church = await db.get(Church, church_id)
    if church is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Church not found")
    return church


async def list_churches(db: AsyncSession) -> list[Church]:
    result = await db.execute(select(Church).order_by(Church.name))
    return list(result.scalars().all())
