"""Webhook dispatcher: POSTs notification requests to a collaborator URL.

The collaborator (e.g. a push-notification function) receives::

    {"specialistIds": [...], "kind": "readiness_check", "data": {...}}

and owns title/body wording and delivery.
"""

from __future__ import annotations

import logging

import httpx

from specialist_scheduling.errors import DispatchFailed
from specialist_scheduling.models.notification import NotificationRequest

from .base import NotificationDispatcher

log = logging.getLogger("specialist_scheduling.notifications.webhook")


class WebhookDispatcher(NotificationDispatcher):
    """NotificationDispatcher backed by an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook dispatcher needs a URL")
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def dispatch(self, request: NotificationRequest) -> None:
        body = {
            "specialistIds": request.recipient_specialist_ids,
            "kind": request.kind.value,
            "data": request.payload,
        }
        try:
            response = await self._client.post(self._url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DispatchFailed(
                f"{request.kind.value} notification to {self._url} failed: {e}"
            ) from e

        log.info(
            "Dispatched %s to %d specialist(s)",
            request.kind.value,
            len(request.recipient_specialist_ids),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
