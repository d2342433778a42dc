"""Notification dispatch boundary."""

from .base import LoggingDispatcher, NotificationDispatcher
from .webhook import WebhookDispatcher

__all__ = ["LoggingDispatcher", "NotificationDispatcher", "WebhookDispatcher"]
