"""FastAPI application — HTTP + WebSocket surface of the scheduling engine.

Endpoints:

  GET    /health                               Health check
  POST   /schedule/check                       Check-only availability
  POST   /schedule/reserve                     Reserve a window for an accepted order
  DELETE /schedule/{entry_id}                  Release an entry (idempotent)
  GET    /specialists/{id}/next-available      Next free start for a duration
  POST   /orders/{id}/readiness                Specialist readiness answer
  POST   /readiness/tick                       Run one readiness tick now
  GET    /orders/overdue                       Scan for overdue orders
  POST   /orders/{id}/snooze                   Silence overdue alerts for an order
  DELETE /orders/{id}/snooze                   Lift a snooze
  WS     /ws/alerts                            Live engine events for dashboards

The periodic readiness, overdue and expiry tasks run inside the app
lifespan when RUN_BACKGROUND_LOOPS is true.
"""

from __future__ import annotations

# Load .env into os.environ before settings are read
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-36s %(levelname)-7s %(message)s",
)

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from specialist_scheduling.config import settings
from specialist_scheduling.engine import SchedulingEngine
from specialist_scheduling.errors import (
    InvalidSpecialist,
    InvalidWindow,
    OrderAlreadyScheduled,
    OrderNotFound,
    SchedulingError,
    SlotUnavailable,
    StoreUnavailable,
)
from specialist_scheduling.models.booking import (
    AvailabilityResponse,
    ReadinessAnswer,
    ReserveRequest,
    ReserveResponse,
    SnoozeRequest,
    WindowRequest,
)
from specialist_scheduling.stores.memory import (
    InMemoryOrderStore,
    InMemoryScheduleStore,
    InMemorySpecialistDirectory,
)

log = logging.getLogger("specialist_scheduling.app")

_START_TIME = time.time()

# Most specific first; first match wins
_ERROR_STATUS: list[tuple[type[SchedulingError], int]] = [
    (InvalidSpecialist, 404),
    (OrderNotFound, 404),
    (InvalidWindow, 422),
    (SlotUnavailable, 409),  # includes LockTimeout
    (OrderAlreadyScheduled, 409),
    (StoreUnavailable, 503),
]


def _status_for(exc: SchedulingError) -> int:
    for cls, code in _ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return 500


def _buffer(minutes: Optional[int]) -> Optional[timedelta]:
    return None if minutes is None else timedelta(minutes=minutes)


def create_app(engine: SchedulingEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an engine, an in-memory engine is built (local demo only).
    """
    if engine is None:
        engine = SchedulingEngine.from_settings(
            schedule_store=InMemoryScheduleStore(),
            order_store=InMemoryOrderStore(),
            directory=InMemorySpecialistDirectory(),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine.settings.run_background_loops:
            engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(
        title="Specialist Scheduling Engine",
        description="Availability, allocation, readiness confirmation and overdue escalation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    @app.exception_handler(SchedulingError)
    async def scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
        status_code = _status_for(exc)
        body: dict = {"error": type(exc).__name__, "detail": str(exc)}
        if isinstance(exc, SlotUnavailable):
            body["available"] = False
            body["conflicts"] = [c.model_dump(mode="json") for c in exc.conflicts]
        if status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(body, status_code=status_code)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "loops": {t.name: t.running for t in engine.tasks},
        })

    # ── Scheduling ─────────────────────────────────────────────

    @app.post("/schedule/check", response_model=AvailabilityResponse)
    async def check_availability(body: WindowRequest) -> AvailabilityResponse:
        conflicts = await engine.checker.find_conflicts(
            body.specialist_id, body.start, body.end, _buffer(body.travel_buffer_minutes)
        )
        return AvailabilityResponse(
            specialist_id=body.specialist_id,
            available=not conflicts,
            conflicts=conflicts,
        )

    @app.post("/schedule/reserve", response_model=ReserveResponse)
    async def reserve(body: ReserveRequest) -> ReserveResponse:
        entry = await engine.allocator.reserve(
            body.specialist_id,
            body.order_id,
            body.start,
            body.end,
            _buffer(body.travel_buffer_minutes),
        )
        now = engine.clock.now()
        next_time = await engine.allocator.next_available_slot(
            body.specialist_id,
            entry.end - entry.start,
            now,
            now + timedelta(days=engine.settings.slot_search_days),
        )
        return ReserveResponse(entry=entry, next_available_time=next_time)

    @app.delete("/schedule/{entry_id}")
    async def release(entry_id: str) -> dict:
        released = await engine.allocator.release(entry_id)
        return {"entry_id": entry_id, "released": released}

    @app.get("/specialists/{specialist_id}/next-available")
    async def next_available(
        specialist_id: str,
        duration_minutes: int = Query(default=60, gt=0),
        search_from: Optional[datetime] = None,
        days: int = Query(default=0, ge=0),
    ) -> dict:
        start = search_from or engine.clock.now()
        horizon = start + timedelta(days=days or engine.settings.slot_search_days)
        slot = await engine.allocator.next_available_slot(
            specialist_id, timedelta(minutes=duration_minutes), start, horizon
        )
        return {
            "specialist_id": specialist_id,
            "next_available_time": slot.isoformat() if slot else None,
            "found": slot is not None,
        }

    # ── Readiness ──────────────────────────────────────────────

    @app.post("/orders/{order_id}/readiness")
    async def respond_readiness(order_id: str, body: ReadinessAnswer) -> dict:
        try:
            result = await engine.readiness.respond_readiness(
                order_id, body.outcome, body.reason, body.specialist_id
            )
        except ValueError as e:
            return JSONResponse({"error": "InvalidAnswer", "detail": str(e)}, status_code=422)
        return {
            "order_id": order_id,
            "applied": result.applied,
            "specialist_readiness_status": result.order.specialist_readiness_status.value,
            "specialist_not_ready_reason": result.order.specialist_not_ready_reason,
        }

    @app.post("/readiness/tick")
    async def readiness_tick() -> dict:
        report = await engine.readiness.tick()
        return {
            "at": report.at.isoformat(),
            "checked": report.checked,
            "checks_sent": report.checks_sent,
            "reminders_sent": report.reminders_sent,
            "unanswered": report.unanswered,
            "notification_failures": report.notification_failures,
            "failures": report.failures,
        }

    # ── Overdue escalation ─────────────────────────────────────

    @app.get("/orders/overdue")
    async def overdue_orders() -> dict:
        overdue = await engine.overdue.scan()
        return {
            "count": len(overdue),
            "orders": [
                {
                    "order_id": o.order_id,
                    "order_number": o.order_number,
                    "booking_date": o.booking_date.isoformat(),
                    "overdue_since": o.overdue_since.isoformat(),
                    "readiness_status": o.readiness_status.value,
                    "unanswered": o.unanswered,
                    "alert_count": o.alert_count,
                    "alerted": o.alerted,
                }
                for o in overdue
            ],
        }

    @app.post("/orders/{order_id}/snooze")
    async def snooze(order_id: str, body: SnoozeRequest | None = None) -> dict:
        minutes = body.minutes if body else None
        until = engine.overdue.snooze(
            order_id, timedelta(minutes=minutes) if minutes else None
        )
        return {"order_id": order_id, "snoozed_until": until.isoformat()}

    @app.delete("/orders/{order_id}/snooze")
    async def unsnooze(order_id: str) -> dict:
        return {"order_id": order_id, "cancelled": engine.overdue.unsnooze(order_id)}

    # ── Live events ────────────────────────────────────────────

    @app.websocket("/ws/alerts")
    async def alerts_ws(websocket: WebSocket) -> None:
        q = engine.broadcaster.subscribe()
        await websocket.accept()

        async def forward() -> None:
            while True:
                event = await q.get()
                await websocket.send_json(event)

        async def drain() -> None:
            # Clients never send; receiving only detects the disconnect
            while True:
                await websocket.receive_text()

        sender = asyncio.create_task(forward())
        receiver = asyncio.create_task(drain())
        try:
            done, pending = await asyncio.wait(
                {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if isinstance(exc, WebSocketDisconnect):
                    log.info("Alert WebSocket disconnected")
                elif exc is not None:
                    log.warning("Alert stream error: %s", exc)
        finally:
            sender.cancel()
            receiver.cancel()
            engine.broadcaster.unsubscribe(q)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "specialist_scheduling.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
