"""
Tests for the registration workflow and the admin registration endpoints.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from prometheus_client import REGISTRY
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from district_events.core.config import get_settings
from district_events.core.exceptions import (
    CapacityExhausted,
    PersistenceFailure,
    RegistrationValidationError,
)
from district_events.db.base import utcnow
from district_events.models.registration import Registration
from district_events.services import ledger_service
from district_events.services.registration_service import register_attendee


def attendee(event_id: str, **overrides) -> dict:
    payload = {
        "event_id": event_id,
        "attendee_name": "Mary Smith",
        "attendee_email": "mary@example.com",
        "attendee_phone": "(555) 123-4567",
        "num_tickets": 1,
    }
    payload.update(overrides)
    return payload


async def count_registrations(session_factory, event_id: str) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(func.count()).select_from(Registration).where(Registration.event_id == event_id)
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_register_free_event(client: AsyncClient, free_event, notifier, fetch_event):
    """Free registration is confirmed, emailed, and takes its spots."""
    response = await client.post("/api/v1/registrations/", json=attendee(free_event.id))

    assert response.status_code == 201
    data = response.json()
    assert data["event_id"] == free_event.id
    assert data["registration_status"] == "confirmed"
    assert data["payment_status"] == "free"
    assert data["hold_expires_at"] is None
    assert data["total_amount"] == 0
    assert data["confirmation_sent"] is True

    assert len(notifier.confirmations) == 1
    message = notifier.confirmations[0]
    assert message.attendee_email == "mary@example.com"
    assert message.event_title == "Youth Night"
    assert message.confirmation_code == data["id"][:8].upper()

    assert (await fetch_event(free_event.id)).spots_remaining == 1


@pytest.mark.asyncio
async def test_last_spots_then_sold_out(client: AsyncClient, free_event, fetch_event, session_factory):
    """Two spots: a party of two fills the event, the next attendee gets 409."""
    first = await client.post(
        "/api/v1/registrations/",
        json=attendee(free_event.id, num_tickets=2),
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/registrations/",
        json=attendee(free_event.id, attendee_email="john@example.com"),
    )
    assert second.status_code == 409
    assert second.json()["code"] == "sold_out"

    assert (await fetch_event(free_event.id)).spots_remaining == 0
    assert await count_registrations(session_factory, free_event.id) == 1


@pytest.mark.asyncio
async def test_register_sold_out_event(client: AsyncClient, sold_out_event, notifier):
    response = await client.post("/api/v1/registrations/", json=attendee(sold_out_event.id))
    assert response.status_code == 409
    assert notifier.confirmations == []


@pytest.mark.asyncio
async def test_register_priced_event_starts_hold(client: AsyncClient, priced_event, notifier, fetch_event):
    """Priced registrations wait for payment: pending, with an expiring hold."""
    response = await client.post(
        "/api/v1/registrations/",
        json=attendee(priced_event.id, num_tickets=2),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["registration_status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["hold_expires_at"] is not None
    assert data["total_amount"] == 30.0
    assert data["confirmation_sent"] is False
    assert notifier.confirmations == []

    assert (await fetch_event(priced_event.id)).spots_remaining == 3


@pytest.mark.asyncio
async def test_register_unlimited_event(client: AsyncClient, unlimited_event, fetch_event):
    response = await client.post(
        "/api/v1/registrations/",
        json=attendee(unlimited_event.id, num_tickets=10),
    )
    assert response.status_code == 201

    refreshed = await fetch_event(unlimited_event.id)
    assert refreshed.spots_remaining == 0
    assert refreshed.has_unlimited_capacity is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"attendee_email": "not-an-email"},
        {"attendee_name": ""},
        {"attendee_name": "x" * 101},
        {"attendee_phone": "call me maybe"},
        {"num_tickets": 0},
        {"num_tickets": 11},
    ],
)
async def test_invalid_attendee_rejected(client: AsyncClient, free_event, fetch_event, overrides):
    """Bad input is rejected before any spot is taken."""
    response = await client.post("/api/v1/registrations/", json=attendee(free_event.id, **overrides))

    assert response.status_code == 422
    assert (await fetch_event(free_event.id)).spots_remaining == 2


@pytest.mark.asyncio
async def test_validation_errors_name_each_field(session_factory, notifier, free_event, fetch_event):
    payload = attendee(free_event.id, attendee_name="   ", attendee_email="nope")
    payload.pop("event_id")

    with pytest.raises(RegistrationValidationError) as exc_info:
        await register_attendee(session_factory, notifier, free_event.id, payload)

    fields = {error["field"] for error in exc_info.value.errors}
    assert fields == {"attendee_name", "attendee_email"}
    assert (await fetch_event(free_event.id)).spots_remaining == 2


@pytest.mark.asyncio
async def test_register_unknown_event(client: AsyncClient, church):
    response = await client.post("/api/v1/registrations/", json=attendee("missing-event"))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_register_unpublished_event(client: AsyncClient, make_event, fetch_event):
    draft = await make_event(is_published=False, capacity=5)

    response = await client.post("/api/v1/registrations/", json=attendee(draft.id))

    assert response.status_code == 404
    assert (await fetch_event(draft.id)).spots_remaining == 5


@pytest.mark.asyncio
async def test_register_past_event(client: AsyncClient, make_event):
    past = await make_event(event_date=utcnow() - timedelta(days=1))

    response = await client.post("/api/v1/registrations/", json=attendee(past.id))

    assert response.status_code == 400
    assert response.json()["code"] == "registration_closed"


@pytest.mark.asyncio
async def test_register_external_registration_event(client: AsyncClient, make_event):
    external = await make_event(external_registration_url="https://example.com/signup")

    response = await client.post("/api/v1/registrations/", json=attendee(external.id))

    assert response.status_code == 400
    assert response.json()["code"] == "registration_closed"


@pytest.mark.asyncio
async def test_persist_failure_releases_spots(session_factory, notifier, free_event, fetch_event, monkeypatch):
    """If the ledger insert fails the reserved spots go back to the event."""

    async def broken_insert(db, event, details):
        raise OperationalError("INSERT INTO registrations", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ledger_service, "create_registration", broken_insert)

    with pytest.raises(PersistenceFailure):
        await register_attendee(
            session_factory,
            notifier,
            free_event.id,
            {"attendee_name": "Mary Smith", "attendee_email": "mary@example.com", "num_tickets": 2},
        )

    assert (await fetch_event(free_event.id)).spots_remaining == 2
    assert await count_registrations(session_factory, free_event.id) == 0
    assert notifier.confirmations == []


@pytest.mark.asyncio
async def test_persist_failure_returns_503(client: AsyncClient, free_event, fetch_event, monkeypatch):
    async def broken_insert(db, event, details):
        raise OperationalError("INSERT INTO registrations", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger_service, "create_registration", broken_insert)

    response = await client.post("/api/v1/registrations/", json=attendee(free_event.id))

    assert response.status_code == 503
    assert response.json()["code"] == "registration_failed"
    assert (await fetch_event(free_event.id)).spots_remaining == 2


@pytest.mark.asyncio
async def test_notification_failure_keeps_registration(client: AsyncClient, free_event, notifier, fetch_event):
    """A broken email provider never undoes a registration."""
    notifier.fail = True

    response = await client.post("/api/v1/registrations/", json=attendee(free_event.id))

    assert response.status_code == 201
    assert response.json()["registration_status"] == "confirmed"
    assert response.json()["confirmation_sent"] is False
    assert (await fetch_event(free_event.id)).spots_remaining == 1


@pytest.mark.asyncio
async def test_sequential_registrations_fill_event_exactly(session_factory, notifier, make_event, fetch_event):
    event = await make_event(capacity=3)
    details = {"attendee_name": "Guest", "attendee_email": "guest@example.com", "num_tickets": 1}

    for _ in range(3):
        await register_attendee(session_factory, notifier, event.id, details)
    with pytest.raises(CapacityExhausted):
        await register_attendee(session_factory, notifier, event.id, details)

    assert (await fetch_event(event.id)).spots_remaining == 0
    assert await count_registrations(session_factory, event.id) == 3


@pytest.mark.asyncio
async def test_cancel_registration_releases_spots(client: AsyncClient, free_event, church_headers, fetch_event):
    created = await client.post(
        "/api/v1/registrations/",
        json=attendee(free_event.id, num_tickets=2),
    )
    registration_id = created.json()["id"]

    response = await client.delete(f"/api/v1/registrations/{registration_id}", headers=church_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["registration_status"] == "cancelled"
    assert data["spots_released"] == 2
    assert (await fetch_event(free_event.id)).spots_remaining == 2


@pytest.mark.asyncio
async def test_cancel_twice_releases_once(client: AsyncClient, make_event, church_headers, fetch_event):
    event = await make_event(capacity=5)
    keep = await client.post("/api/v1/registrations/", json=attendee(event.id, num_tickets=2))
    cancel = await client.post(
        "/api/v1/registrations/",
        json=attendee(event.id, attendee_email="john@example.com", num_tickets=2),
    )
    assert keep.status_code == 201

    first = await client.delete(f"/api/v1/registrations/{cancel.json()['id']}", headers=church_headers)
    second = await client.delete(f"/api/v1/registrations/{cancel.json()['id']}", headers=church_headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert (await fetch_event(event.id)).spots_remaining == 3


@pytest.mark.asyncio
async def test_cancel_requires_auth(client: AsyncClient, free_event):
    created = await client.post("/api/v1/registrations/", json=attendee(free_event.id))

    response = await client.delete(f"/api/v1/registrations/{created.json()['id']}")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cancel_other_church_forbidden(client: AsyncClient, other_church, make_event, church_headers):
    foreign = await make_event(church_id=other_church.id)
    created = await client.post("/api/v1/registrations/", json=attendee(foreign.id))

    response = await client.delete(f"/api/v1/registrations/{created.json()['id']}", headers=church_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_unknown_registration(client: AsyncClient, county_headers):
    response = await client.delete("/api/v1/registrations/missing", headers=county_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_check_in(client: AsyncClient, free_event, church_headers):
    created = await client.post("/api/v1/registrations/", json=attendee(free_event.id))
    registration_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/registrations/{registration_id}/check-in",
        json={"checked_in": True},
        headers=church_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["checked_in"] is True
    assert data["checked_in_at"] is not None
    assert data["event_title"] == "Youth Night"

    undo = await client.put(
        f"/api/v1/registrations/{registration_id}/check-in",
        json={"checked_in": False},
        headers=church_headers,
    )
    assert undo.json()["checked_in"] is False
    assert undo.json()["checked_in_at"] is None


@pytest.mark.asyncio
async def test_check_in_cancelled_registration(client: AsyncClient, free_event, church_headers):
    created = await client.post("/api/v1/registrations/", json=attendee(free_event.id))
    registration_id = created.json()["id"]
    await client.delete(f"/api/v1/registrations/{registration_id}", headers=church_headers)

    response = await client.put(
        f"/api/v1/registrations/{registration_id}/check-in",
        json={"checked_in": True},
        headers=church_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_registrations_scoped_and_searchable(
    client: AsyncClient, make_event, other_church, church_headers, county_headers
):
    own = await make_event(capacity=10)
    foreign = await make_event(church_id=other_church.id, capacity=10)
    await client.post("/api/v1/registrations/", json=attendee(own.id, attendee_name="Alice Jones", attendee_email="alice@example.com"))
    await client.post("/api/v1/registrations/", json=attendee(own.id, attendee_name="Bob Brown", attendee_email="bob@example.com"))
    await client.post("/api/v1/registrations/", json=attendee(foreign.id, attendee_name="Carol White", attendee_email="carol@example.com"))

    church_view = await client.get("/api/v1/registrations/", headers=church_headers)
    assert church_view.status_code == 200
    assert {r["attendee_name"] for r in church_view.json()} == {"Alice Jones", "Bob Brown"}

    county_view = await client.get("/api/v1/registrations/", headers=county_headers)
    assert len(county_view.json()) == 3

    search = await client.get("/api/v1/registrations/", params={"search": "ALICE"}, headers=church_headers)
    assert [r["attendee_email"] for r in search.json()] == ["alice@example.com"]

    forbidden = await client.get("/api/v1/registrations/", params={"event_id": foreign.id}, headers=church_headers)
    assert forbidden.status_code == 403


def sold_out_count() -> float:
    return REGISTRY.get_sample_value("registration_attempts_total", {"outcome": "sold_out"}) or 0.0


@pytest.mark.asyncio
async def test_sold_out_raises_capacity_exhausted(session_factory, notifier, free_event, fetch_event):
    """The rejected attempt reports which event and how many tickets."""
    await register_attendee(
        session_factory,
        notifier,
        free_event.id,
        {"attendee_name": "Anna Lee", "attendee_email": "anna@example.com", "num_tickets": 2},
    )
    before = sold_out_count()

    with pytest.raises(CapacityExhausted) as exc_info:
        await register_attendee(
            session_factory,
            notifier,
            free_event.id,
            {"attendee_name": "Ben Cole", "attendee_email": "ben@example.com", "num_tickets": 1},
        )

    assert exc_info.value.event_id == free_event.id
    assert exc_info.value.requested == 1
    assert sold_out_count() == before + 1
    assert (await fetch_event(free_event.id)).spots_remaining == 0
    assert await count_registrations(session_factory, free_event.id) == 1


@pytest.mark.asyncio
async def test_ticket_limit_follows_settings(client: AsyncClient, make_event, monkeypatch):
    event = await make_event(capacity=50)
    monkeypatch.setattr(get_settings(), "MAX_TICKETS_PER_REGISTRATION", 20)

    allowed = await client.post("/api/v1/registrations/", json=attendee(event.id, num_tickets=15))
    assert allowed.status_code == 201

    monkeypatch.setattr(get_settings(), "MAX_TICKETS_PER_REGISTRATION", 3)
    rejected = await client.post("/api/v1/registrations/", json=attendee(event.id, num_tickets=4))
    assert rejected.status_code == 422


@pytest.mark.asyncio
async def test_blank_external_url_still_registers(client: AsyncClient, make_event):
    event = await make_event(external_registration_url="")

    response = await client.post("/api/v1/registrations/", json=attendee(event.id))

    assert response.status_code == 201
