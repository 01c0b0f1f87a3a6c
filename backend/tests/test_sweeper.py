"""
Tests for the hold expiry sweeper.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from district_events.db.base import utcnow
from district_events.models.registration import Registration
from district_events.services import hold_sweeper
from district_events.services.hold_sweeper import run_sweeper, sweep_expired_holds
from district_events.services.registration_service import cancel_registration, register_attendee


async def hold(session_factory, notifier, event, num_tickets=1, email="hold@example.com") -> Registration:
    return await register_attendee(
        session_factory,
        notifier,
        event.id,
        {"attendee_name": "Pending Payer", "attendee_email": email, "num_tickets": num_tickets},
    )


async def expire(session_factory, registration_id: str, minutes_ago: int = 5) -> None:
    async with session_factory() as db:
        await db.execute(
            update(Registration)
            .where(Registration.id == registration_id)
            .values(hold_expires_at=utcnow() - timedelta(minutes=minutes_ago))
        )
        await db.commit()


async def load(session_factory, registration_id: str) -> Registration:
    async with session_factory() as db:
        return await db.get(Registration, registration_id)


@pytest.mark.asyncio
async def test_expired_hold_released(session_factory, notifier, priced_event, fetch_event):
    registration = await hold(session_factory, notifier, priced_event, num_tickets=2)
    await expire(session_factory, registration.id)
    assert (await fetch_event(priced_event.id)).spots_remaining == 3

    released = await sweep_expired_holds(session_factory)

    assert released == 1
    assert (await fetch_event(priced_event.id)).spots_remaining == 5
    swept = await load(session_factory, registration.id)
    assert swept.registration_status == "cancelled"
    assert swept.payment_status == "pending"
    assert swept.hold_expires_at is None


@pytest.mark.asyncio
async def test_second_pass_is_noop(session_factory, notifier, priced_event, fetch_event):
    """Spots come back exactly once however often the sweeper runs."""
    registration = await hold(session_factory, notifier, priced_event, num_tickets=2)
    await hold(session_factory, notifier, priced_event, num_tickets=1, email="other@example.com")
    await expire(session_factory, registration.id)

    assert await sweep_expired_holds(session_factory) == 1
    assert await sweep_expired_holds(session_factory) == 0

    assert (await fetch_event(priced_event.id)).spots_remaining == 4


@pytest.mark.asyncio
async def test_unexpired_and_confirmed_untouched(session_factory, notifier, priced_event, free_event, fetch_event):
    await hold(session_factory, notifier, priced_event, num_tickets=2)
    await register_attendee(
        session_factory,
        notifier,
        free_event.id,
        {"attendee_name": "Free Guest", "attendee_email": "free@example.com", "num_tickets": 1},
    )

    assert await sweep_expired_holds(session_factory) == 0

    assert (await fetch_event(priced_event.id)).spots_remaining == 3
    assert (await fetch_event(free_event.id)).spots_remaining == 1


@pytest.mark.asyncio
async def test_cancelled_before_sweep_releases_once(session_factory, notifier, priced_event, fetch_event):
    registration = await hold(session_factory, notifier, priced_event, num_tickets=2)
    await hold(session_factory, notifier, priced_event, num_tickets=2, email="other@example.com")
    await expire(session_factory, registration.id)

    async with session_factory() as db:
        await cancel_registration(db, registration.id)

    assert await sweep_expired_holds(session_factory) == 0
    assert (await fetch_event(priced_event.id)).spots_remaining == 3


@pytest.mark.asyncio
async def test_failed_record_does_not_stop_batch(
    session_factory, notifier, make_event, fetch_event, monkeypatch
):
    """One bad release is logged and skipped; the rest of the batch proceeds."""
    broken = await make_event(title="Broken", capacity=5, is_free=False, price=Decimal("10"))
    healthy = await make_event(title="Healthy", capacity=5, is_free=False, price=Decimal("10"))
    bad = await hold(session_factory, notifier, broken, num_tickets=1)
    good = await hold(session_factory, notifier, healthy, num_tickets=1, email="good@example.com")
    await expire(session_factory, bad.id, minutes_ago=10)
    await expire(session_factory, good.id, minutes_ago=5)

    real_release = hold_sweeper.release_spots

    async def flaky_release(db, event_id, num_tickets):
        if event_id == broken.id:
            raise RuntimeError("row lock timeout")
        await real_release(db, event_id, num_tickets)

    monkeypatch.setattr(hold_sweeper, "release_spots", flaky_release)

    assert await sweep_expired_holds(session_factory) == 1
    assert (await fetch_event(healthy.id)).spots_remaining == 5
    # The failed hold was rolled back and is picked up by the next pass
    assert (await load(session_factory, bad.id)).registration_status == "pending"
    assert (await fetch_event(broken.id)).spots_remaining == 4

    monkeypatch.setattr(hold_sweeper, "release_spots", real_release)
    assert await sweep_expired_holds(session_factory) == 1
    assert (await fetch_event(broken.id)).spots_remaining == 5


@pytest.mark.asyncio
async def test_batch_size_limits_pass(session_factory, notifier, priced_event, fetch_event):
    for i in range(3):
        registration = await hold(session_factory, notifier, priced_event, email=f"guest{i}@example.com")
        await expire(session_factory, registration.id)

    assert await sweep_expired_holds(session_factory, batch_size=2) == 2
    assert await sweep_expired_holds(session_factory, batch_size=2) == 1
    assert (await fetch_event(priced_event.id)).spots_remaining == 5


@pytest.mark.asyncio
async def test_run_sweeper_stops_on_signal(session_factory, notifier, priced_event, fetch_event):
    registration = await hold(session_factory, notifier, priced_event, num_tickets=2)
    await expire(session_factory, registration.id)

    stop = asyncio.Event()
    task = asyncio.create_task(run_sweeper(session_factory, stop, interval_seconds=0.01))
    await asyncio.sleep(0.2)
    stop.set()
    await asyncio.wait_for(task, timeout=2)

    assert (await fetch_event(priced_event.id)).spots_remaining == 5


@pytest.mark.asyncio
async def test_sweep_endpoint(client: AsyncClient, session_factory, notifier, priced_event, county_headers):
    registration = await hold(session_factory, notifier, priced_event)
    await expire(session_factory, registration.id)

    response = await client.post("/api/v1/registrations/sweep", headers=county_headers)

    assert response.status_code == 200
    assert response.json() == {"released": 1}


@pytest.mark.asyncio
async def test_sweep_endpoint_county_admin_only(client: AsyncClient, church_headers):
    response = await client.post("/api/v1/registrations/sweep", headers=church_headers)
    assert response.status_code == 403
