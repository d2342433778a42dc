"""Tests for the FastAPI surface: status mapping, readiness and overdue flows."""

import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from helpers import RecordingDispatcher

from specialist_scheduling.app import create_app
from specialist_scheduling.clock import ManualClock
from specialist_scheduling.config import Settings
from specialist_scheduling.engine import SchedulingEngine
from specialist_scheduling.errors import StoreUnavailable
from specialist_scheduling.models.notification import NotificationKind
from specialist_scheduling.models.order import Order, OrderSpecialist, OrderStatus
from specialist_scheduling.models.schedule import Specialist
from specialist_scheduling.stores.memory import (
    InMemoryOrderStore,
    InMemoryScheduleStore,
    InMemorySpecialistDirectory,
)


def utc(hour, minute=0, day=15):
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def engine():
    settings = Settings(
        timezone="UTC",
        travel_buffer_minutes=30,
        run_background_loops=False,
        notification_webhook_url="",
    )
    order_store = InMemoryOrderStore([
        Order(
            id="ord-1",
            order_number="N-1001",
            status=OrderStatus.UPCOMING,
            booking_date=date(2026, 3, 15),
            booking_time="afternoon",
            specialists=[OrderSpecialist(specialist_id="spec-1", is_accepted=True)],
        ),
    ])
    return SchedulingEngine(
        settings,
        InMemoryScheduleStore(),
        order_store,
        InMemorySpecialistDirectory([
            Specialist(id="spec-1", name="Amal"),
            Specialist(id="spec-off", active=False),
        ]),
        RecordingDispatcher(),
        ManualClock(utc(8)),
    )


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as c:
        yield c


def window(start, end, **extra):
    return {
        "specialist_id": "spec-1",
        "start": start.isoformat(),
        "end": end.isoformat(),
        **extra,
    }


# ── Health ─────────────────────────────────────────────────────


class TestHealth:
    def test_health_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["loops"] == {
            "readiness-tick": False,
            "overdue-scan": False,
            "expiry-scan": False,
        }


# ── Scheduling ─────────────────────────────────────────────────


class TestSchedule:
    def test_check_free_window(self, client):
        resp = client.post("/schedule/check", json=window(utc(14), utc(16)))
        assert resp.status_code == 200
        assert resp.json()["available"] is True
        assert resp.json()["conflicts"] == []

    def test_reserve_then_conflict(self, client, engine):
        engine.clock.set(utc(13))
        resp = client.post("/schedule/reserve", json=window(utc(14), utc(16), order_id="ord-1"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["entry"]["order_id"] == "ord-1"
        # From 13:00 in 2h steps: 13:00 and 15:00 collide, 17:00 is clear
        assert parse(body["next_available_time"]) == utc(17)

        check = client.post("/schedule/check", json=window(utc(16, 15), utc(17)))
        assert check.json()["available"] is False
        assert len(check.json()["conflicts"]) == 1

        clash = client.post("/schedule/reserve", json=window(utc(16, 15), utc(17), order_id="ord-2"))
        assert clash.status_code == 409
        assert clash.json()["error"] == "SlotUnavailable"
        assert clash.json()["available"] is False
        assert clash.json()["conflicts"][0]["id"] == body["entry"]["id"]

        ok = client.post("/schedule/reserve", json=window(utc(16, 30), utc(17, 30), order_id="ord-3"))
        assert ok.status_code == 200

    def test_order_already_scheduled(self, client):
        client.post("/schedule/reserve", json=window(utc(9), utc(10), order_id="ord-1"))
        resp = client.post("/schedule/reserve", json=window(utc(18), utc(19), order_id="ord-1"))
        assert resp.status_code == 409
        assert resp.json()["error"] == "OrderAlreadyScheduled"

    def test_explicit_buffer(self, client):
        client.post("/schedule/reserve", json=window(utc(14), utc(16), order_id="ord-1", travel_buffer_minutes=0))
        resp = client.post("/schedule/check", json=window(utc(16), utc(17)))
        assert resp.json()["available"] is True

    def test_unknown_specialist_404(self, client):
        resp = client.post("/schedule/check", json={**window(utc(9), utc(10)), "specialist_id": "ghost"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "InvalidSpecialist"

    def test_inactive_specialist_404(self, client):
        resp = client.post("/schedule/check", json={**window(utc(9), utc(10)), "specialist_id": "spec-off"})
        assert resp.status_code == 404

    def test_reversed_window_422(self, client):
        resp = client.post("/schedule/check", json=window(utc(10), utc(9)))
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidWindow"

    def test_release_idempotent(self, client):
        entry = client.post("/schedule/reserve", json=window(utc(9), utc(10), order_id="ord-1")).json()["entry"]

        first = client.delete(f"/schedule/{entry['id']}")
        second = client.delete(f"/schedule/{entry['id']}")

        assert first.json()["released"] is True
        assert second.status_code == 200
        assert second.json()["released"] is False

    def test_next_available(self, client):
        client.post("/schedule/reserve", json=window(utc(8), utc(12), order_id="ord-1"))
        resp = client.get(
            "/specialists/spec-1/next-available",
            params={"duration_minutes": 60, "search_from": utc(8).isoformat(), "days": 1},
        )
        assert resp.status_code == 200
        assert resp.json()["found"] is True
        # 1h probes: 08-12 blocked, 12:00 inside the buffer, 13:00 free
        assert parse(resp.json()["next_available_time"]) == utc(13)


# ── Readiness ──────────────────────────────────────────────────


class TestReadiness:
    def test_tick_then_answer(self, client, engine):
        engine.clock.set(utc(14, 10))

        tick = client.post("/readiness/tick").json()
        assert tick["checks_sent"] == ["ord-1"]
        assert len(engine.dispatcher.of_kind(NotificationKind.READINESS_CHECK)) == 1

        resp = client.post("/orders/ord-1/readiness", json={
            "outcome": "not_ready", "reason": "flat tyre", "specialist_id": "spec-1",
        })
        assert resp.status_code == 200
        assert resp.json() == {
            "order_id": "ord-1",
            "applied": True,
            "specialist_readiness_status": "not_ready",
            "specialist_not_ready_reason": "flat tyre",
        }

    def test_answer_before_check_ignored(self, client):
        resp = client.post("/orders/ord-1/readiness", json={"outcome": "ready"})
        assert resp.status_code == 200
        assert resp.json()["applied"] is False
        assert resp.json()["specialist_readiness_status"] == "none"

    def test_non_answer_outcome_422(self, client):
        resp = client.post("/orders/ord-1/readiness", json={"outcome": "pending"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidAnswer"

    def test_unknown_order_404(self, client):
        resp = client.post("/orders/nope/readiness", json={"outcome": "ready"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "OrderNotFound"


# ── Overdue ────────────────────────────────────────────────────


class TestOverdue:
    def test_overdue_and_snooze(self, client, engine):
        engine.clock.set(utc(1, day=16))

        first = client.get("/orders/overdue").json()
        assert first["count"] == 1
        assert first["orders"][0]["order_number"] == "N-1001"
        assert first["orders"][0]["alerted"] is True

        snooze = client.post("/orders/ord-1/snooze", json={"minutes": 5})
        assert parse(snooze.json()["snoozed_until"]) == utc(1, 5, day=16)
        assert client.get("/orders/overdue").json()["count"] == 0

        assert client.delete("/orders/ord-1/snooze").json()["cancelled"] is True
        assert client.get("/orders/overdue").json()["count"] == 1

    def test_default_snooze_duration(self, client, engine):
        engine.clock.set(utc(1, day=16))
        resp = client.post("/orders/ord-1/snooze")
        assert parse(resp.json()["snoozed_until"]) == utc(1, 3, day=16)

    def test_alerts_websocket(self, client, engine):
        engine.clock.set(utc(1, day=16))
        with client.websocket_connect("/ws/alerts") as ws:
            client.get("/orders/overdue")
            event = ws.receive_json()
        assert event["type"] == "overdue_alert"
        assert event["order_id"] == "ord-1"


class BrokenSocket:
    """Accepts, then fails every send; the client never disconnects."""

    def __init__(self):
        self.sends = 0

    async def accept(self):
        pass

    async def send_json(self, data):
        self.sends += 1
        raise RuntimeError("connection reset")

    async def receive_text(self):
        await asyncio.Event().wait()


class TestAlertStream:
    @pytest.mark.asyncio
    async def test_send_failure_ends_handler(self, engine):
        app = create_app(engine)
        endpoint = next(r.endpoint for r in app.routes if getattr(r, "path", None) == "/ws/alerts")
        socket = BrokenSocket()

        handler = asyncio.create_task(endpoint(socket))
        while engine.broadcaster.subscriber_count == 0:
            await asyncio.sleep(0)
        engine.broadcaster.emit("overdue_alert", "ord-1", utc(8), {})

        await asyncio.wait_for(handler, 1)

        assert socket.sends == 1
        assert engine.broadcaster.subscriber_count == 0


class TestStoreFailure:
    def test_store_unavailable_503(self, client, engine):
        engine.checker.find_conflicts = AsyncMock(side_effect=StoreUnavailable("schedule store timed out"))

        resp = client.post("/schedule/check", json=window(utc(9), utc(10)))

        assert resp.status_code == 503
        assert resp.json() == {"error": "StoreUnavailable", "detail": "schedule store timed out"}
