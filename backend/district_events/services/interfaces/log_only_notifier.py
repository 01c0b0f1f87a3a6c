"""
Log-only notification sink for development and deployments without an
email provider configured.
"""

from district_events.core.logging import get_logger
from district_events.services.interfaces.notification import (
    ConfirmationMessage,
    InviteMessage,
    NotificationSink,
)

logger = get_logger(__name__)


class LogOnlyNotifier(NotificationSink):
    """
    Never delivers anything.

    Reports every message as not delivered so `confirmation_sent` stays
    false and nobody mistakes a logged email for a sent one.
    """

    async def send_confirmation(self, message: ConfirmationMessage) -> bool:
        logger.warning(
            "confirmation_email_not_sent",
            reason="no_email_provider",
            registration_id=message.registration_id,
            to=message.attendee_email,
        )
        return False

    async def send_invite(self, message: InviteMessage) -> bool:
        logger.warning(
            "invite_email_not_sent",
            reason="no_email_provider",
            to=message.email,
            invite_url=message.invite_url,
        )
        return False
