"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .notification import NotificationSink, ConfirmationMessage, InviteMessage
from .log_only_notifier import LogOnlyNotifier

__all__ = ['NotificationSink', 'ConfirmationMessage', 'InviteMessage', 'LogOnlyNotifier']
