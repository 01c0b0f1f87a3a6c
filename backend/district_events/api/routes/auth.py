"""
Authentication endpoints: login and invitation-based admin signup.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.security import create_access_token, ensure_can_manage_church, get_current_user
from district_events.db.session import get_db
from district_events.models.user import Role, User
from district_events.schemas.user import (
    InviteAccept,
    InviteCreate,
    InviteDetails,
    InviteResponse,
    Token,
    UserLogin,
    UserResponse,
)
from district_events.services.auth_service import (
    accept_invite,
    authenticate_user,
    create_invite,
    get_open_invite,
)
from district_events.services.interfaces.notification import NotificationSink
from district_events.services.strategy_factory import get_notifier

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/invites", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite_admin(
    invite_data: InviteCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
):
    """
    Invite a new admin by email. County admins may invite anyone; church
    admins may only invite other admins for their own church.
    """
    if invite_data.role == Role.COUNTY_ADMIN and not user.is_county_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only county admins can invite county admins",
        )
    if invite_data.church_id:
        ensure_can_manage_church(user, invite_data.church_id)

    invite, email_sent = await create_invite(db, notifier, invite_data, user)
    response = InviteResponse.model_validate(invite)
    response.email_sent = email_sent
    return response


@router.get("/invites/{token}", response_model=InviteDetails)
async def get_invite(token: str, db: AsyncSession = Depends(get_db)):
    """Look up an invite before showing the signup form."""
    return await get_open_invite(db, token)


@router.post("/invites/{token}/accept", response_model=Token, status_code=status.HTTP_201_CREATED)
async def accept(token: str, accept_data: InviteAccept, db: AsyncSession = Depends(get_db)):
    """Create the invited account and log it in."""
    user = await accept_invite(db, token, accept_data)
    return Token(access_token=create_access_token(data={"sub": user.id, "role": user.role}))
