"""
Email delivery through the Resend HTTP API.
Implements NotificationSink using httpx.

Failure policy:
  Every provider problem (timeout, connection error, non-2xx response) is
  logged and reported as False. Callers treat email as best-effort: a
  registration that could not be confirmed by email is still a valid
  registration holding its spots.
"""

from html import escape
from typing import Optional

import httpx

from district_events.core.config import get_settings
from district_events.core.logging import get_logger
from district_events.core.metrics import record_notification
from district_events.services.interfaces.notification import (
    ConfirmationMessage,
    InviteMessage,
    NotificationSink,
)

logger = get_logger(__name__)
settings = get_settings()

ROLE_TITLES = {
    "county_admin": "County Administrator",
    "church_admin": "Church Administrator",
}


def render_confirmation_html(message: ConfirmationMessage) -> str:
    if message.total_amount and message.total_amount > 0:
        price_line = f"<p><strong>Total Paid:</strong> ${message.total_amount:.2f}</p>"
    else:
        price_line = "<p><strong>Price:</strong> Free</p>"

    event_date = message.event_date.strftime("%A, %B %d, %Y at %I:%M %p")
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
    <h1>Registration Confirmed!</h1>
    <p>Hi <strong>{escape(message.attendee_name)}</strong>,</p>
    <p>Thank you for registering! Your spot has been confirmed for the following event:</p>
    <h2>{escape(message.event_title)}</h2>
    <p><strong>Date:</strong> {escape(event_date)}</p>
    <p><strong>Location:</strong> {escape(message.event_location)}</p>
    <p><strong>Tickets:</strong> {message.num_tickets}</p>
    {price_line}
    <p><strong>Confirmation ID:</strong> {message.confirmation_code}</p>
    <p style="font-size: 12px; color: #666;">Please save this for your records.</p>
    <p style="font-size: 12px; color: #999;">This is an automated confirmation email. Please do not reply directly to this message.</p>
  </body>
</html>"""


def render_invite_html(message: InviteMessage) -> str:
    role_name = ROLE_TITLES.get(message.role, message.role)
    if message.role == "church_admin" and message.church_name:
        role_name = f"{role_name} for {message.church_name}"
    greeting = f"Hello {escape(message.full_name)}," if message.full_name else "Hello,"
    url = escape(message.invite_url, quote=True)
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto;">
    <h2>You're Invited!</h2>
    <p>{greeting}</p>
    <p>You have been invited to join <strong>{escape(settings.APP_NAME)}</strong> as a <strong>{escape(role_name)}</strong>.</p>
    <p><a href="{url}">Accept Invitation</a></p>
    <p style="font-size: 14px; color: #666;">This invitation will expire in {message.expires_in_days} days.
    If you didn't expect this invitation, you can safely ignore this email.</p>
    <p style="font-size: 12px; color: #999;">If the link doesn't work, copy and paste this URL into your browser:<br>{url}</p>
  </body>
</html>"""


class ResendNotifier(NotificationSink):
    """Sends HTML email through https://api.resend.com/emails."""

    def __init__(self, api_key: str, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=settings.EMAIL_TIMEOUT_SECONDS)

    async def _send(self, kind: str, sender: str, to: str, subject: str, html: str) -> bool:
        try:
            response = await self._client.post(
                settings.RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": sender, "to": [to], "subject": subject, "html": html},
            )
        except httpx.HTTPError as e:
            logger.error("email_send_error", kind=kind, to=to, error=str(e))
            record_notification(kind, sent=False)
            return False

        if response.is_error:
            logger.error(
                "email_rejected",
                kind=kind,
                to=to,
                status_code=response.status_code,
                body=response.text[:500],
            )
            record_notification(kind, sent=False)
            return False

        logger.info("email_sent", kind=kind, to=to)
        record_notification(kind, sent=True)
        return True

    async def send_confirmation(self, message: ConfirmationMessage) -> bool:
        return await self._send(
            "confirmation",
            settings.EMAIL_FROM,
            message.attendee_email,
            f"Registration Confirmed: {message.event_title}",
            render_confirmation_html(message),
        )

    async def send_invite(self, message: InviteMessage) -> bool:
        return await self._send(
            "invite",
            settings.INVITE_EMAIL_FROM,
            message.email,
            f"You're invited to join {settings.APP_NAME}",
            render_invite_html(message),
        )

    async def close(self) -> None:
        await self._client.aclose()
