"""WebSocket event surface.

Frames are JSON objects ``{"event": <name>, "data": {...}}`` in both
directions. Every connection joins the "all vehicles" audience on connect
and leaves every group on disconnect.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from aiohttp import WSMsgType, web
from pydantic import Field, ValidationError

from wastetrack.api._envelope import CALLER_HEADER
from wastetrack.api._keys import CORE_KEY, WEBSOCKETS_KEY
from wastetrack.broadcast.fanout import SubscriptionHandle
from wastetrack.exceptions import InvalidInputError, TrackerError
from wastetrack.models._base import TrackerBaseModel
from wastetrack.state.events import NormalizedEvent
from wastetrack.tracker import TrackingCore

_logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 30.0


class _Frame(TrackerBaseModel):
    event: str
    data: dict[str, Any] = Field(default_factory=dict)


def _parse_frame(raw: str) -> _Frame:
    try:
        return _Frame.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise InvalidInputError("frame must be a JSON object with an 'event' name") from exc


class _Connection:
    """Per-socket state: observer id, group handles, and a send lock."""

    def __init__(self, core: TrackingCore, ws: web.WebSocketResponse, observer_id: str) -> None:
        self.core = core
        self.ws = ws
        self.observer_id = observer_id
        self.handles: dict[str, SubscriptionHandle] = {}
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, data: dict[str, Any]) -> None:
        async with self._send_lock:
            await self.ws.send_json({"event": event, "data": data})

    async def push(self, event: NormalizedEvent) -> None:
        frame = event.to_wire()
        await self.send(frame["event"], frame["data"])

    async def handle(self, frame: _Frame) -> None:
        fanout = self.core.fanout
        reconciler = self.core.reconciler

        if frame.event == "subscribeAll":
            fanout.subscribe(self.observer_id)
        elif frame.event == "joinVehicleGroup":
            vehicle_id = frame.data.get("vehicleId")
            if not vehicle_id:
                raise InvalidInputError("vehicleId is required", field="vehicleId")
            handle = fanout.subscribe(self.observer_id, str(vehicle_id))
            self.handles[handle.group] = handle
        elif frame.event == "leaveVehicleGroup":
            vehicle_id = str(frame.data.get("vehicleId") or "").strip().upper()
            handle = self.handles.pop(vehicle_id, None)
            if handle is not None:
                fanout.unsubscribe(handle)
        elif frame.event == "locationUpdate":
            result = await reconciler.handle_location_payload(frame.data)
            await self.send("locationUpdateConfirmed", _confirmation(result.event))
        elif frame.event == "statusUpdate":
            result = await reconciler.handle_status_payload(frame.data)
            await self.send("statusUpdateConfirmed", _confirmation(result.event))
        elif frame.event == "emergencyAlert":
            await reconciler.handle_emergency_payload(frame.data)
        else:
            raise InvalidInputError(f"unknown event {frame.event!r}", field="event")


def _confirmation(event: NormalizedEvent) -> dict[str, Any]:
    return {
        "vehicleId": event.vehicle_id,
        "sequence": event.sequence,
        "timestamp": event.timestamp.isoformat(),
        "persisted": event.persisted,
    }


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    core = request.app[CORE_KEY]
    ws = web.WebSocketResponse(heartbeat=HEARTBEAT_SECONDS)
    await ws.prepare(request)
    request.app[WEBSOCKETS_KEY].add(ws)

    caller = request.headers.get(CALLER_HEADER)
    observer_id = f"{caller or 'observer'}-{uuid.uuid4().hex[:12]}"
    connection = _Connection(core, ws, observer_id)
    core.fanout.connect(observer_id, connection.push)
    core.fanout.subscribe(observer_id)

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                event_name = None
                try:
                    frame = _parse_frame(msg.data)
                    event_name = frame.event
                    await connection.handle(frame)
                except TrackerError as exc:
                    await connection.send("error", {"message": str(exc), "event": event_name})
            elif msg.type == WSMsgType.ERROR:
                _logger.debug("WebSocket %s closed with exception %s", observer_id, ws.exception())
    finally:
        core.fanout.disconnect(observer_id)
        request.app[WEBSOCKETS_KEY].discard(ws)
    return ws
