"""Quote-collection expiry notices.

Orders still collecting quotes (``pending`` / ``waiting_quotes``) whose
``expires_at`` has passed get one ``order_expired`` notice to every
assigned specialist that never quoted, then ``notified_expiry`` is set.
The flag is also set when nobody needs notifying. A failed dispatch
leaves it unset so the next scan retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from specialist_scheduling.clock import Clock, SystemClock
from specialist_scheduling.events import AlertBroadcaster
from specialist_scheduling.models.notification import NotificationKind, NotificationRequest
from specialist_scheduling.models.order import QUOTING_STATUSES, Order
from specialist_scheduling.notifications.base import NotificationDispatcher
from specialist_scheduling.stores.base import OrderStore

log = logging.getLogger("specialist_scheduling.expiry")


@dataclass
class ExpiryReport:
    at: datetime
    processed: int = 0
    notified: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


class QuoteExpiryNotifier:
    def __init__(
        self,
        order_store: OrderStore,
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
        broadcaster: AlertBroadcaster | None = None,
    ) -> None:
        self._orders = order_store
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._broadcaster = broadcaster

    @staticmethod
    def is_expired(order: Order, now: datetime) -> bool:
        return (
            order.status in QUOTING_STATUSES
            and order.expires_at is not None
            and order.expires_at < now
            and not order.notified_expiry
        )

    async def scan(self, now: datetime | None = None) -> ExpiryReport:
        now = now or self._clock.now()
        report = ExpiryReport(at=now)

        for order in await self._orders.list_orders(QUOTING_STATUSES):
            if not self.is_expired(order, now):
                continue
            report.processed += 1
            try:
                await self._notify(order, now)
                report.notified.append(order.id)
            except Exception as e:
                log.exception("Expiry notice failed for order %s", order.id)
                report.failures[order.id] = str(e) or type(e).__name__

        if report.processed:
            log.info(
                "Expiry scan: %d/%d expired orders notified",
                len(report.notified), report.processed,
            )
        return report

    async def _notify(self, order: Order, now: datetime) -> None:
        recipients = [s.specialist_id for s in order.specialists if s.quoted_price is None]

        if recipients:
            await self._dispatcher.dispatch(NotificationRequest(
                recipient_specialist_ids=recipients,
                kind=NotificationKind.ORDER_EXPIRED,
                payload={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "expired_at": order.expires_at.isoformat(),
                },
            ))
        else:
            log.info("No specialists to notify for expired order %s", order.order_number or order.id)

        await self._orders.update_fields(order.id, {"notified_expiry": True})
        if self._broadcaster:
            self._broadcaster.emit("order_expired", order.id, now, {"recipients": recipients})
