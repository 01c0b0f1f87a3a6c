"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file so concurrent reservations run against a
real database lock, and tables start empty.
"""

import os

# Settings and the engine are built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SWEEPER_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from district_events.main import app
from district_events.db.base import Base, utcnow
from district_events.db.session import get_db, get_session_factory
from district_events.core.security import create_access_token, hash_password
from district_events.models.church import Church
from district_events.models.event import Event
from district_events.models.user import Role, User
from district_events.services.interfaces.notification import (
    ConfirmationMessage,
    InviteMessage,
    NotificationSink,
)
from district_events.services.strategy_factory import get_notifier


class RecordingNotifier(NotificationSink):
    """Keeps every message; `fail` makes sends raise like a broken provider."""

    def __init__(self):
        self.confirmations: list[ConfirmationMessage] = []
        self.invites: list[InviteMessage] = []
        self.fail = False

    async def send_confirmation(self, message: ConfirmationMessage) -> bool:
        if self.fail:
            raise RuntimeError("email provider unreachable")
        self.confirmations.append(message)
        return True

    async def send_invite(self, message: InviteMessage) -> bool:
        if self.fail:
            raise RuntimeError("email provider unreachable")
        self.invites.append(message)
        return True


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh database file, dispose afterwards."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and the recording notifier."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def fetch_event(session_factory):
    """Read an event through a fresh session so no cached state leaks in."""

    async def _fetch(event_id: str) -> Event:
        async with session_factory() as session:
            return await session.get(Event, event_id)

    return _fetch


@pytest_asyncio.fixture
async def church(db_session: AsyncSession) -> Church:
    church = Church(name="Grace Fellowship", location="Springfield")
    db_session.add(church)
    await db_session.commit()
    return church


@pytest_asyncio.fixture
async def other_church(db_session: AsyncSession) -> Church:
    church = Church(name="Hope Chapel", location="Shelbyville")
    db_session.add(church)
    await db_session.commit()
    return church


@pytest_asyncio.fixture
async def county_admin(db_session: AsyncSession) -> User:
    user = User(
        email="county@example.com",
        full_name="County Admin",
        hashed_password=hash_password("countypass123"),
        role=Role.COUNTY_ADMIN,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def church_admin(db_session: AsyncSession, church: Church) -> User:
    user = User(
        email="pastor@example.com",
        full_name="Church Admin",
        hashed_password=hash_password("churchpass123"),
        role=Role.CHURCH_ADMIN,
        church_id=church.id,
    )
    db_session.add(user)
    await db_session.commit()
    return user


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def county_headers(county_admin: User) -> dict:
    return _headers(county_admin)


@pytest.fixture
def church_headers(church_admin: User) -> dict:
    return _headers(church_admin)


@pytest.fixture
def make_event(db_session: AsyncSession, church: Church):
    """Factory for events; published, free and 30 days out unless overridden."""

    async def _make(**overrides) -> Event:
        capacity = overrides.pop("capacity", 10)
        fields = {
            "church_id": church.id,
            "title": "Community Picnic",
            "description": "Bring a dish to share",
            "location": "Fellowship Hall",
            "event_date": utcnow() + timedelta(days=30),
            "capacity": capacity,
            "spots_remaining": capacity,
            "has_unlimited_capacity": False,
            "is_free": True,
            "price": Decimal("0"),
            "is_published": True,
        }
        fields.update(overrides)
        event = Event(**fields)
        db_session.add(event)
        await db_session.commit()
        return event

    return _make


@pytest_asyncio.fixture
async def free_event(make_event) -> Event:
    """Free event with two spots."""
    return await make_event(title="Youth Night", capacity=2)


@pytest_asyncio.fixture
async def priced_event(make_event) -> Event:
    """$15.00 per ticket, five spots."""
    return await make_event(
        title="Marriage Retreat",
        capacity=5,
        is_free=False,
        price=Decimal("15.00"),
    )


@pytest_asyncio.fixture
async def unlimited_event(make_event) -> Event:
    return await make_event(title="Sunday Service", capacity=0, has_unlimited_capacity=True)


@pytest_asyncio.fixture
async def sold_out_event(make_event) -> Event:
    return await make_event(title="Choir Concert", capacity=3, spots_remaining=0)
