"""
Notification sink factory.
Configures which email backend the registration workflow uses.
"""

from typing import Optional

from district_events.core.config import get_settings
from district_events.services.interfaces.notification import NotificationSink
from district_events.services.interfaces.log_only_notifier import LogOnlyNotifier
from district_events.services.notification_service import ResendNotifier


def build_notifier() -> NotificationSink:
    """
    Resend when RESEND_API_KEY is set, otherwise a log-only sink.
    """
    settings = get_settings()
    if settings.RESEND_API_KEY:
        return ResendNotifier(settings.RESEND_API_KEY)
    return LogOnlyNotifier()


# Singleton instance
_notifier: Optional[NotificationSink] = None


def get_notifier() -> NotificationSink:
    """FastAPI dependency; tests override it with a recording fake."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


async def close_notifier() -> None:
    global _notifier
    if _notifier is not None:
        await _notifier.close()
        _notifier = None
