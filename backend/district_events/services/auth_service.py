"""
Authentication service: admin login, invitations and the bootstrap admin.
"""

from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from district_events.core.config import get_settings
from district_events.core.exceptions import InviteUnavailable
from district_events.core.logging import get_logger
from district_events.core.security import (
    create_access_token,
    generate_invite_token,
    hash_password,
    verify_password,
)
from district_events.db.base import as_utc, utcnow
from district_events.models.church import Church
from district_events.models.invite import Invite
from district_events.models.user import Role, User
from district_events.schemas.user import InviteAccept, InviteCreate, UserLogin
from district_events.services.interfaces.notification import InviteMessage, NotificationSink

logger = get_logger(__name__)
settings = get_settings()


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate an admin and return a JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(data={"sub": user.id, "role": user.role})
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return token


async def create_invite(
    db: AsyncSession,
    notifier: NotificationSink,
    invite_data: InviteCreate,
    invited_by: User,
) -> tuple[Invite, bool]:
    """
    Issue a single-use invite token and email it.
    Returns the invite and whether the email went out.
    """
    email = invite_data.email.lower()

    existing_user = await db.execute(select(User.id).where(User.email == email))
    if existing_user.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        )

    pending = await db.execute(
        select(Invite).where(Invite.email == email, Invite.accepted_at.is_(None))
    )
    for invite in pending.scalars().all():
        if as_utc(invite.expires_at) > utcnow():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="An invite for this email is already pending",
            )

    church_name: Optional[str] = None
    if invite_data.church_id:
        church = await db.get(Church, invite_data.church_id)
        if church is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Church not found")
        church_name = church.name

    # Expired or used invites for this address are dead weight
    await db.execute(delete(Invite).where(Invite.email == email))

    invite = Invite(
        email=email,
        full_name=invite_data.full_name,
        role=invite_data.role,
        church_id=invite_data.church_id if invite_data.role == Role.CHURCH_ADMIN else None,
        invite_token=generate_invite_token(),
        invited_by=invited_by.id,
        expires_at=utcnow() + timedelta(days=settings.INVITE_TTL_DAYS),
    )
    db.add(invite)
    await db.commit()
    logger.info("invite_created", invite_id=invite.id, email=email, role=invite.role)

    message = InviteMessage(
        email=email,
        full_name=invite.full_name,
        role=invite.role,
        church_name=church_name,
        invite_url=f"{settings.SITE_URL.rstrip('/')}/accept-invite?token={invite.invite_token}",
        expires_in_days=settings.INVITE_TTL_DAYS,
    )
    try:
        email_sent = await notifier.send_invite(message)
    except Exception as exc:
        logger.error("invite_notification_failed", invite_id=invite.id, error=str(exc))
        email_sent = False
    return invite, email_sent


async def get_open_invite(db: AsyncSession, token: str) -> Invite:
    """Invite for a token, if it can still be accepted."""
    result = await db.execute(select(Invite).where(Invite.invite_token == token))
    invite = result.scalar_one_or_none()
    if invite is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="This invitation link is invalid",
        )
    if invite.accepted_at is not None:
        raise InviteUnavailable("This invitation has already been used")
    if as_utc(invite.expires_at) < utcnow():
        raise InviteUnavailable("This invitation has expired. Please request a new one.")
    return invite


async def accept_invite(db: AsyncSession, token: str, accept: InviteAccept) -> User:
    """Create the invited admin. The token can be redeemed once."""
    invite = await get_open_invite(db, token)

    claimed = await db.execute(
        update(Invite)
        .where(Invite.id == invite.id, Invite.accepted_at.is_(None))
        .values(accepted_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise InviteUnavailable("This invitation has already been used")

    user = User(
        email=invite.email,
        full_name=accept.full_name,
        hashed_password=hash_password(accept.password),
        role=invite.role,
        church_id=invite.church_id,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        )

    logger.info("invite_accepted", user_id=user.id, email=user.email, role=user.role)
    return user


async def ensure_first_admin(db: AsyncSession) -> Optional[User]:
    """Create the bootstrap county admin when configured and no users exist."""
    if not (settings.FIRST_ADMIN_EMAIL and settings.FIRST_ADMIN_PASSWORD):
        return None

    count = (await db.execute(select(func.count()).select_from(User))).scalar()
    if count:
        return None

    user = User(
        email=settings.FIRST_ADMIN_EMAIL.lower(),
        full_name=settings.FIRST_ADMIN_NAME,
        hashed_password=hash_password(settings.FIRST_ADMIN_PASSWORD),
        role=Role.COUNTY_ADMIN,
    )
    db.add(user)
    await db.commit()
    logger.info("first_admin_created", user_id=user.id, email=user.email)
    return user
