"""Ingest reconciler.

Validates driver reports, applies them to the state store and the location
history, and publishes the resulting :class:`NormalizedEvent`.

Persistence is best effort: when the store is unreachable the event is
still produced and broadcast, flagged ``persisted=False``. Observers may
therefore see positions that were never recorded.

Updates for one vehicle are serialized by a per-vehicle lock, held across
the read-modify-write and the publish, so observers receive a vehicle's
events in the order they were produced. Different vehicles never contend.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from wastetrack._redact import redact_for_log
from wastetrack.broadcast.fanout import BroadcastFanout
from wastetrack.exceptions import NotFoundError, StoreUnavailableError
from wastetrack.ingestion.normalize import clamp
from wastetrack.models.location import LocationSample
from wastetrack.models.requests import (
    EmergencyAlertRequest,
    LocationUpdateRequest,
    StatusUpdateRequest,
    validate_request,
)
from wastetrack.models.vehicle import CurrentLocation, GeoPoint, Vehicle, VehicleStatus
from wastetrack.state.events import EventType, NormalizedEvent
from wastetrack.state.history import LocationHistoryLog
from wastetrack.state.store import VehicleStateStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an ingest operation.

    ``persisted`` is true only when every write of the operation landed;
    for a location update that means both the vehicle state and the history
    sample. ``vehicle`` is the stored state after the write, or ``None``
    when the state write itself did not happen.
    """

    event: NormalizedEvent
    persisted: bool
    vehicle: Vehicle | None = None


def build_status_patch(vehicle: Vehicle, request: StatusUpdateRequest, now: datetime) -> dict[str, Any]:
    """Snake_case patch applying *request* to *vehicle*.

    ``completed_stops`` is clamped into ``[0, total_stops]``. Entering
    ``completed`` stamps ``actual_end_time`` once; leaving it clears it.
    """
    patch: dict[str, Any] = {"status": request.status.value}
    if request.completed_stops is not None:
        patch["route"] = {"completed_stops": clamp(request.completed_stops, 0, vehicle.route.total_stops)}

    if request.status == VehicleStatus.COMPLETED:
        if vehicle.schedule.actual_end_time is None:
            patch["schedule"] = {"actual_end_time": now.isoformat()}
    elif vehicle.schedule.actual_end_time is not None:
        patch["schedule"] = {"actual_end_time": None}
    return patch


class IngestReconciler:
    """Single writer path for vehicle state and location history."""

    def __init__(
        self,
        store: VehicleStateStore,
        history: LocationHistoryLog,
        fanout: BroadcastFanout,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._history = history
        self._fanout = fanout
        self._clock = clock
        # Locks live only while some update holds or awaits them.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # Only vehicles that were registered when they first reported get a counter.
        self._sequences: dict[str, int] = {}

    def _lock(self, vehicle_id: str) -> asyncio.Lock:
        lock = self._locks.get(vehicle_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[vehicle_id] = lock
        return lock

    def _emit(
        self,
        event_type: EventType,
        vehicle_id: str,
        timestamp: datetime,
        data: dict[str, Any],
        *,
        persisted: bool,
        tracked: bool = True,
    ) -> NormalizedEvent:
        sequence = 0
        if tracked:
            sequence = self._sequences.get(vehicle_id, 0) + 1
            self._sequences[vehicle_id] = sequence
        event = NormalizedEvent(
            type=event_type,
            vehicle_id=vehicle_id,
            timestamp=timestamp,
            sequence=sequence,
            data=data,
            persisted=persisted,
        )
        delivered = self._fanout.publish(event)
        _logger.debug(
            "Published %s vehicle=%s seq=%d observers=%d persisted=%s",
            event_type.value,
            vehicle_id,
            sequence,
            delivered,
            persisted,
        )
        return event

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def apply_location_update(
        self,
        vehicle_id: str,
        latitude: float,
        longitude: float,
        speed: float | None = None,
        heading: float | None = None,
        accuracy: float | None = None,
    ) -> IngestResult:
        """Record a position report and broadcast it.

        Raises :class:`InvalidInputError` for bad input and
        :class:`NotFoundError` for unregistered vehicles.
        """
        request = validate_request(
            LocationUpdateRequest,
            {
                "vehicle_id": vehicle_id,
                "latitude": latitude,
                "longitude": longitude,
                "speed": speed,
                "heading": heading,
                "accuracy": accuracy,
            },
        )
        return await self._apply_location(request)

    async def handle_location_payload(self, payload: Mapping[str, Any]) -> IngestResult:
        """Validate a raw camelCase payload and apply it."""
        _logger.debug("Location payload received: %s", redact_for_log(payload))
        return await self._apply_location(validate_request(LocationUpdateRequest, dict(payload)))

    async def _apply_location(self, request: LocationUpdateRequest) -> IngestResult:
        vehicle_id = request.vehicle_id
        async with self._lock(vehicle_id):
            now = self._clock()
            location = CurrentLocation(
                latitude=request.latitude,
                longitude=request.longitude,
                timestamp=now,
                accuracy=request.accuracy or 0.0,
            )

            vehicle: Vehicle | None = None
            persisted = True
            try:
                vehicle = await self._store.upsert(
                    vehicle_id,
                    {"current_location": location.to_document()},
                    create=False,
                )
                await self._history.append(
                    LocationSample(
                        vehicle_id=vehicle_id,
                        driver_ref=vehicle.driver_ref,
                        location=GeoPoint(latitude=request.latitude, longitude=request.longitude),
                        speed=request.speed or 0.0,
                        heading=request.heading or 0.0,
                        accuracy=request.accuracy or 0.0,
                        timestamp=now,
                    )
                )
            except StoreUnavailableError as exc:
                persisted = False
                _logger.warning("Location for %s not persisted, broadcasting only: %s", vehicle_id, exc)

            data: dict[str, Any] = {
                "latitude": request.latitude,
                "longitude": request.longitude,
                "speed": request.speed or 0.0,
                "heading": request.heading or 0.0,
                "accuracy": request.accuracy or 0.0,
            }
            event = self._emit(EventType.LOCATION, vehicle_id, now, data, persisted=persisted)
        return IngestResult(event=event, persisted=persisted, vehicle=vehicle)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def apply_status_update(
        self,
        vehicle_id: str,
        status: str | VehicleStatus,
        completed_stops: int | None = None,
    ) -> IngestResult:
        """Change a vehicle's status (and optionally its route progress)."""
        request = validate_request(
            StatusUpdateRequest,
            {"vehicle_id": vehicle_id, "status": status, "completed_stops": completed_stops},
        )
        return await self._apply_status(request)

    async def handle_status_payload(self, payload: Mapping[str, Any]) -> IngestResult:
        _logger.debug("Status payload received: %s", redact_for_log(payload))
        return await self._apply_status(validate_request(StatusUpdateRequest, dict(payload)))

    async def _apply_status(self, request: StatusUpdateRequest) -> IngestResult:
        vehicle_id = request.vehicle_id
        async with self._lock(vehicle_id):
            now = self._clock()
            vehicle: Vehicle | None = None
            persisted = True
            try:
                current = await self._store.get(vehicle_id)
                if current is None:
                    raise NotFoundError(f"Vehicle {vehicle_id} not found", vehicle_id=vehicle_id)
                vehicle = await self._store.upsert(
                    vehicle_id,
                    build_status_patch(current, request, now),
                    create=False,
                )
            except StoreUnavailableError as exc:
                persisted = False
                _logger.warning("Status for %s not persisted, broadcasting only: %s", vehicle_id, exc)

            if vehicle is not None:
                actual_end = vehicle.schedule.actual_end_time
                data: dict[str, Any] = {
                    "status": vehicle.status.value,
                    "completedStops": vehicle.route.completed_stops,
                    "totalStops": vehicle.route.total_stops,
                    "actualEndTime": actual_end.isoformat() if actual_end is not None else None,
                }
            else:
                data = {"status": request.status.value, "completedStops": request.completed_stops}
            event = self._emit(EventType.STATUS, vehicle_id, now, data, persisted=persisted)
        return IngestResult(event=event, persisted=persisted, vehicle=vehicle)

    # ------------------------------------------------------------------
    # Emergency
    # ------------------------------------------------------------------

    async def apply_emergency_alert(
        self,
        vehicle_id: str,
        message: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> NormalizedEvent:
        """Broadcast an emergency alert to every observer. Not persisted.

        Alerts from plates the store does not know carry ``sequence`` 0.
        """
        payload: dict[str, Any] = {"vehicle_id": vehicle_id, "latitude": latitude, "longitude": longitude}
        if message is not None:
            payload["message"] = message
        return await self._apply_emergency(validate_request(EmergencyAlertRequest, payload))

    async def handle_emergency_payload(self, payload: Mapping[str, Any]) -> NormalizedEvent:
        _logger.debug("Emergency payload received: %s", redact_for_log(payload))
        return await self._apply_emergency(validate_request(EmergencyAlertRequest, dict(payload)))

    async def _apply_emergency(self, request: EmergencyAlertRequest) -> NormalizedEvent:
        async with self._lock(request.vehicle_id):
            now = self._clock()
            try:
                tracked = await self._store.get(request.vehicle_id) is not None
            except StoreUnavailableError:
                tracked = request.vehicle_id in self._sequences
            data: dict[str, Any] = {"message": request.message}
            if request.latitude is not None:
                data["latitude"] = request.latitude
                data["longitude"] = request.longitude
            _logger.warning("Emergency alert from %s: %s", request.vehicle_id, request.message)
            return self._emit(EventType.EMERGENCY, request.vehicle_id, now, data, persisted=False, tracked=tracked)
