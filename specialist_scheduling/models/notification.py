"""Outbound notification request handed to the delivery collaborator."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class NotificationKind(str, Enum):
    READINESS_CHECK = "readiness_check"
    READINESS_REMINDER = "readiness_reminder"
    OVERDUE_ALERT = "overdue_alert"
    ORDER_EXPIRED = "order_expired"


class NotificationRequest(BaseModel):
    """Decides *that* and *to whom* a notification is due.

    Wording, language and transport (push, WhatsApp, ...) belong to the
    collaborator that receives this request.
    """

    recipient_specialist_ids: list[str]
    kind: NotificationKind
    payload: dict[str, Any] = {}
