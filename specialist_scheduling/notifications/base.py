"""Abstract notification dispatcher.

The engine decides when a notification is due and who receives it. A
dispatcher hands that decision to whatever collaborator owns delivery.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from specialist_scheduling.models.notification import NotificationRequest

log = logging.getLogger("specialist_scheduling.notifications")


class NotificationDispatcher(ABC):
    """Outbound boundary to the notification-delivery collaborator."""

    @abstractmethod
    async def dispatch(self, request: NotificationRequest) -> None:
        """Hand one notification request to the collaborator.

        Raises:
            DispatchFailed: the collaborator could not accept the request.
        """


class LoggingDispatcher(NotificationDispatcher):
    """Dispatcher that only logs. Default when no collaborator is configured."""

    async def dispatch(self, request: NotificationRequest) -> None:
        log.info(
            "Notification %s -> %s: %s",
            request.kind.value,
            request.recipient_specialist_ids,
            request.payload,
        )
