"""
Tests for the Resend email sink and the log-only fallback.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from district_events.services.interfaces.log_only_notifier import LogOnlyNotifier
from district_events.services.interfaces.notification import ConfirmationMessage, InviteMessage
from district_events.services.notification_service import ResendNotifier, render_confirmation_html
from district_events.services.strategy_factory import build_notifier


def confirmation(**overrides) -> ConfirmationMessage:
    fields = {
        "registration_id": "3f2c9a1e-0000-4000-8000-000000000000",
        "attendee_name": "Mary <Smith>",
        "attendee_email": "mary@example.com",
        "event_title": "Marriage Retreat",
        "event_date": datetime(2026, 11, 20, 18, 30, tzinfo=timezone.utc),
        "event_location": "Lakeside Lodge",
        "num_tickets": 2,
        "total_amount": Decimal("30.00"),
    }
    fields.update(overrides)
    return ConfirmationMessage(**fields)


def notifier_with(handler) -> ResendNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ResendNotifier("re_test_key", client=client)


@pytest.mark.asyncio
async def test_confirmation_posted_to_resend():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "email_123"})

    sink = notifier_with(handler)
    assert await sink.send_confirmation(confirmation()) is True
    await sink.close()

    assert len(requests) == 1
    request = requests[0]
    assert request.headers["Authorization"] == "Bearer re_test_key"
    body = json.loads(request.content)
    assert body["to"] == ["mary@example.com"]
    assert body["subject"] == "Registration Confirmed: Marriage Retreat"
    assert "3F2C9A1E" in body["html"]


@pytest.mark.asyncio
async def test_provider_error_reported_as_not_sent():
    sink = notifier_with(lambda request: httpx.Response(422, json={"message": "invalid from"}))
    assert await sink.send_confirmation(confirmation()) is False


@pytest.mark.asyncio
async def test_connection_error_reported_as_not_sent():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sink = notifier_with(handler)
    invite = InviteMessage(
        email="newadmin@example.com",
        full_name=None,
        role="county_admin",
        church_name=None,
        invite_url="http://localhost:5173/accept-invite?token=abc",
        expires_in_days=7,
    )
    assert await sink.send_invite(invite) is False


def test_confirmation_html_escapes_and_prices():
    html = render_confirmation_html(confirmation())
    assert "Mary &lt;Smith&gt;" in html
    assert "$30.00" in html

    free_html = render_confirmation_html(confirmation(total_amount=Decimal("0")))
    assert "Free" in free_html


@pytest.mark.asyncio
async def test_log_only_sink_never_claims_delivery():
    assert await LogOnlyNotifier().send_confirmation(confirmation()) is False


def test_build_notifier_without_api_key():
    assert isinstance(build_notifier(), LogOnlyNotifier)
