"""
Notification sink interface.
Lets the registration workflow send email without knowing the provider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ConfirmationMessage:
    registration_id: str
    attendee_name: str
    attendee_email: str
    event_title: str
    event_date: datetime
    event_location: str
    num_tickets: int
    total_amount: Optional[Decimal] = None

    @property
    def confirmation_code(self) -> str:
        return self.registration_id[:8].upper()


@dataclass(frozen=True)
class InviteMessage:
    email: str
    full_name: Optional[str]
    role: str
    church_name: Optional[str]
    invite_url: str
    expires_in_days: int


class NotificationSink(ABC):
    """
    Interface for outbound notifications.

    Implementations:
    - ResendNotifier: delivers HTML email through the Resend HTTP API
    - LogOnlyNotifier: logs the message and reports it as not delivered

    Both methods return True only when the provider accepted the message.
    They must not raise for delivery problems: a failed notification never
    undoes a registration or an invite.
    """

    @abstractmethod
    async def send_confirmation(self, message: ConfirmationMessage) -> bool:
        """
        Send a registration confirmation.

        Args:
            message: Attendee and event details for the email body

        Returns:
            True if delivered to the provider, False otherwise
        """
        pass

    @abstractmethod
    async def send_invite(self, message: InviteMessage) -> bool:
        """
        Send an admin invitation link.

        Args:
            message: Invitee, role and the accept-invite URL

        Returns:
            True if delivered to the provider, False otherwise
        """
        pass

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
