"""
Church endpoints. Listing is public; creating churches is a county admin task.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.security import require_roles
from district_events.db.session import get_db
from district_events.models.user import Role, User
from district_events.schemas.church import ChurchCreate, ChurchResponse
from district_events.services.church_service import create_church, get_church, list_churches

router = APIRouter(prefix="/churches", tags=["Churches"])


@router.get("/", response_model=list[ChurchResponse])
async def list_churches_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_churches(db)


@router.get("/{church_id}", response_model=ChurchResponse)
async def get_church_endpoint(church_id: str, db: AsyncSession = Depends(get_db)):
    return await get_church(db, church_id)


@router.post("/", response_model=ChurchResponse, status_code=status.HTTP_201_CREATED)
async def create_church_endpoint(
    church_data: ChurchCreate,
    user: User = Depends(require_roles(Role.COUNTY_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await create_church(db, church_data)
