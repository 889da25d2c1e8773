from __future__ import annotations

from typing import Any

import pytest
from aiohttp.test_utils import TestClient, TestServer

from wastetrack.api import create_app
from wastetrack.config import TrackerConfig
from wastetrack.state.backends import MemoryBackend
from wastetrack.tracker import TrackingCore


def _app(backend: MemoryBackend | None = None, **config: Any):
    config.setdefault("seed_demo_data", True)
    core = TrackingCore(TrackerConfig(**config), backend=backend or MemoryBackend())
    return create_app(core)


async def _ready(ws) -> None:
    """Round-trip one frame so the server-side subscription is in place."""
    await ws.send_json({"event": "ping"})
    frame = await ws.receive_json(timeout=2)
    assert frame["event"] == "error"


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_vehicles_returns_seeded_fleet() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.get("/api/tracking/vehicles")
        body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert body["degraded"] is False
    assert body["count"] == 3
    names = {v["vehicleId"]: v["driverName"] for v in body["data"]}
    assert names["KA01AB1234"] == "John Smith"
    assert {"lat", "lng", "status", "route", "capacity", "lastUpdate"} <= set(body["data"][0])


@pytest.mark.asyncio
async def test_vehicle_detail() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.get("/api/tracking/vehicles/ka01ab1234")
        body = await resp.json()
        missing = await client.get("/api/tracking/vehicles/KA09ZZ0000")
        missing_body = await missing.json()
        malformed = await client.get("/api/tracking/vehicles/not-a-plate")

    assert resp.status == 200
    assert body["data"]["vehicleId"] == "KA01AB1234"
    assert body["data"]["routeCompletionPercentage"] == 80
    assert missing.status == 404
    assert missing_body["success"] is False
    assert malformed.status == 400


@pytest.mark.asyncio
async def test_nearby() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.get(
            "/api/tracking/nearby", params={"latitude": "12.9716", "longitude": "77.5946", "radius": "0.5"}
        )
        body = await resp.json()
        wide = await (await client.get("/api/tracking/nearby", params={"latitude": "12.97", "longitude": "77.59"})).json()
        bad = await client.get("/api/tracking/nearby", params={"longitude": "77.59"})

    assert [v["vehicleId"] for v in body["data"]] == ["KA01AB1234"]
    assert wide["count"] == 3
    assert bad.status == 400


@pytest.mark.asyncio
async def test_health() -> None:
    backend = MemoryBackend()
    async with TestClient(TestServer(_app(backend))) as client:
        up = await (await client.get("/api/health")).json()
        backend.available = False
        down = await (await client.get("/api/health")).json()

    assert up["store"] == "up"
    assert down["store"] == "down"


# ------------------------------------------------------------------
# Writes
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_location_then_history() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.post(
            "/api/tracking/update-location",
            json={"vehicleId": "KA01AB1234", "latitude": 12.99, "longitude": 77.61, "speed": 25},
        )
        body = await resp.json()
        history = await (await client.get("/api/tracking/history/KA01AB1234")).json()
        limited = await client.get("/api/tracking/history/KA01AB1234", params={"limit": "0"})

    assert resp.status == 200
    assert body["success"] is True
    assert body["persisted"] is True
    assert body["location"]["latitude"] == 12.99
    assert body["location"]["sequence"] == 1
    assert history["count"] == 1
    assert history["data"][0]["location"] == {"latitude": 12.99, "longitude": 77.61}
    assert limited.status == 400


@pytest.mark.asyncio
async def test_update_location_errors() -> None:
    async with TestClient(TestServer(_app())) as client:
        unknown = await client.post(
            "/api/tracking/update-location",
            json={"vehicleId": "KA09ZZ0000", "latitude": 12.0, "longitude": 77.0},
        )
        out_of_range = await client.post(
            "/api/tracking/update-location",
            json={"vehicleId": "KA01AB1234", "latitude": 120.0, "longitude": 77.0},
        )
        out_of_range_body = await out_of_range.json()
        not_json = await client.post("/api/tracking/update-location", data=b"{nope")
        not_object = await client.post("/api/tracking/update-location", json=[1, 2])

    assert unknown.status == 404
    assert out_of_range.status == 400
    assert "latitude" in out_of_range_body["message"]
    assert not_json.status == 400
    assert not_object.status == 400


@pytest.mark.asyncio
async def test_history_date_beyond_calendar_is_bad_request() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.get(
            "/api/tracking/history/KA01AB1234", params={"startDate": "9999-12-31T23:59:59-05:00"}
        )
        body = await resp.json()

    assert resp.status == 400
    assert body["success"] is False


@pytest.mark.asyncio
async def test_update_status_completed() -> None:
    async with TestClient(TestServer(_app())) as client:
        resp = await client.post(
            "/api/tracking/update-status",
            json={"vehicleId": "KA01CD5678", "status": "completed", "completedStops": 50},
        )
        body = await resp.json()

    assert resp.status == 200
    assert body["vehicle"]["status"] == "completed"
    assert body["vehicle"]["route"]["completedStops"] == 20
    assert body["vehicle"]["schedule"]["actualEndTime"] is not None
    assert body["event"]["actualEndTime"] is not None
    assert body["event"]["completedStops"] == 20


@pytest.mark.asyncio
async def test_store_outage_degrades_reads_and_still_accepts_writes() -> None:
    backend = MemoryBackend()
    async with TestClient(TestServer(_app(backend))) as client:
        backend.available = False
        listing = await (await client.get("/api/tracking/vehicles")).json()
        update = await client.post(
            "/api/tracking/update-location",
            json={"vehicleId": "KA01AB1234", "latitude": 12.0, "longitude": 77.0},
        )
        update_body = await update.json()
        detail = await client.get("/api/tracking/vehicles/KA01AB1234")
        history = await client.get("/api/tracking/history/KA01AB1234")

    assert listing["degraded"] is True
    assert listing["reason"] == "store unavailable"
    assert listing["count"] == 3
    assert update.status == 200
    assert update_body["persisted"] is False
    assert detail.status == 503
    assert history.status == 503


@pytest.mark.asyncio
async def test_fallback_can_be_disabled() -> None:
    backend = MemoryBackend()
    async with TestClient(TestServer(_app(backend, fallback_enabled=False))) as client:
        backend.available = False
        listing = await (await client.get("/api/tracking/vehicles")).json()

    assert listing["degraded"] is True
    assert listing["data"] == []


# ------------------------------------------------------------------
# WebSocket
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_websocket_receives_http_updates() -> None:
    async with TestClient(TestServer(_app())) as client:
        ws = await client.ws_connect("/ws")
        await _ready(ws)

        await client.post(
            "/api/tracking/update-location",
            json={"vehicleId": "KA01AB1234", "latitude": 12.99, "longitude": 77.61},
        )
        frame = await ws.receive_json(timeout=2)
        await ws.close()

    assert frame["event"] == "vehicleLocationUpdate"
    assert frame["data"]["vehicleId"] == "KA01AB1234"
    assert frame["data"]["latitude"] == 12.99
    assert frame["data"]["persisted"] is True


@pytest.mark.asyncio
async def test_websocket_location_frame_is_confirmed_and_broadcast() -> None:
    async with TestClient(TestServer(_app())) as client:
        watcher = await client.ws_connect("/ws")
        await _ready(watcher)
        driver = await client.ws_connect("/ws")
        await _ready(driver)

        await driver.send_json(
            {"event": "locationUpdate", "data": {"vehicleId": "KA01AB1234", "lat": 12.9, "lng": 77.5}}
        )
        driver_frames = {(await driver.receive_json(timeout=2))["event"] for _ in range(2)}
        watched = await watcher.receive_json(timeout=2)

        await driver.close()
        await watcher.close()

    assert driver_frames == {"locationUpdateConfirmed", "vehicleLocationUpdate"}
    assert watched["event"] == "vehicleLocationUpdate"


@pytest.mark.asyncio
async def test_websocket_rejections_are_reported_to_sender() -> None:
    async with TestClient(TestServer(_app())) as client:
        ws = await client.ws_connect("/ws")
        await ws.send_str("not json")
        bad_frame = await ws.receive_json(timeout=2)
        await ws.send_json({"event": "statusUpdate", "data": {"vehicleId": "KA09ZZ0000", "status": "idle"}})
        not_found = await ws.receive_json(timeout=2)
        await ws.send_json({"event": "joinVehicleGroup", "data": {}})
        no_vehicle = await ws.receive_json(timeout=2)
        await ws.close()

    assert bad_frame["event"] == "error"
    assert not_found["event"] == "error"
    assert not_found["data"]["event"] == "statusUpdate"
    assert no_vehicle["event"] == "error"


@pytest.mark.asyncio
async def test_websocket_emergency_reaches_every_observer() -> None:
    async with TestClient(TestServer(_app())) as client:
        watcher = await client.ws_connect("/ws")
        await _ready(watcher)
        driver = await client.ws_connect("/ws")
        await _ready(driver)

        await driver.send_json({"event": "emergencyAlert", "data": {"vehicleId": "KA01AB1234", "message": "Fire"}})
        frame = await watcher.receive_json(timeout=2)

        await driver.close()
        await watcher.close()

    assert frame["event"] == "emergencyAlert"
    assert frame["data"]["message"] == "Fire"
    assert frame["data"]["persisted"] is False


@pytest.mark.asyncio
async def test_websocket_disconnect_releases_observer() -> None:
    app = _app()
    async with TestClient(TestServer(app)) as client:
        ws = await client.ws_connect("/ws")
        await _ready(ws)
        health = await (await client.get("/api/health")).json()
        assert health["observers"] == 1

        await ws.close()
        for _ in range(50):
            health = await (await client.get("/api/health")).json()
            if health["observers"] == 0:
                break

    assert health["observers"] == 0
