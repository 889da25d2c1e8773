"""Current-state store for vehicles.

This is the only component allowed to persist vehicle state. It is written
through by the ingest reconciler and read concurrently (without locks) by
the snapshot query service.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from wastetrack._constants import KM_PER_DEGREE
from wastetrack.exceptions import InvalidInputError, NotFoundError
from wastetrack.ingestion.normalize import merge_patch
from wastetrack.models.vehicle import Vehicle, VehicleStatus
from wastetrack.state.backends import StorageBackend

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class BoundingBox:
    """A latitude/longitude box, inclusive on every edge."""

    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    @classmethod
    def around(cls, latitude: float, longitude: float, radius_km: float) -> BoundingBox:
        """Approximate a circle of *radius_km* around a point.

        Half widths are ``radius_km / 111`` degrees of latitude and
        ``radius_km / (111 * cos(latitude))`` degrees of longitude. This is
        intentionally rough: good enough for "nearby", not for geofencing.
        """
        lat_delta = radius_km / KM_PER_DEGREE
        cos_lat = math.cos(math.radians(latitude))
        lng_delta = radius_km / (KM_PER_DEGREE * cos_lat) if cos_lat > 1e-12 else 360.0
        return cls(
            lat_min=latitude - lat_delta,
            lat_max=latitude + lat_delta,
            lng_min=longitude - lng_delta,
            lng_max=longitude + lng_delta,
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.lat_min <= latitude <= self.lat_max and self.lng_min <= longitude <= self.lng_max


@dataclass(frozen=True)
class VehicleFilter:
    exclude_statuses: frozenset[VehicleStatus] = field(default_factory=frozenset)
    active_only: bool = False
    bbox: BoundingBox | None = None

    @classmethod
    def excluding(cls, statuses: Iterable[VehicleStatus], **kwargs: Any) -> VehicleFilter:
        return cls(exclude_statuses=frozenset(statuses), **kwargs)

    def matches(self, vehicle: Vehicle) -> bool:
        if vehicle.status in self.exclude_statuses:
            return False
        if self.active_only and not vehicle.is_active:
            return False
        if self.bbox is not None:
            location = vehicle.current_location
            return self.bbox.contains(location.latitude, location.longitude)
        return True


class VehicleStateStore:
    """Vehicle state keyed by canonical vehicle id.

    ``get`` returns ``None`` for unknown vehicles; an unreachable backend
    raises :class:`~wastetrack.exceptions.StoreUnavailableError` instead, so
    callers can tell "nothing there" from "cannot look".
    """

    def __init__(self, backend: StorageBackend, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._backend = backend
        self._clock = clock

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    async def get(self, vehicle_id: str) -> Vehicle | None:
        document = await self._backend.get_vehicle(vehicle_id)
        if document is None:
            return None
        return Vehicle.model_validate(document)

    async def register(self, vehicle: Vehicle) -> Vehicle:
        """Store a vehicle as-is (registration and seeding)."""
        await self._backend.put_vehicle(vehicle.vehicle_id, vehicle.to_document())
        return vehicle

    async def upsert(self, vehicle_id: str, patch: dict[str, Any], *, create: bool = True) -> Vehicle:
        """Merge a snake_case *patch* into the stored vehicle.

        The merged document is re-validated, so a patch can never leave a
        vehicle violating its invariants. A patch that changes nothing is
        not written and does not bump ``updated_at``.

        Raises :class:`NotFoundError` when the vehicle is absent and
        ``create`` is false.
        """
        existing = await self._backend.get_vehicle(vehicle_id)
        if existing is None and not create:
            raise NotFoundError(f"Vehicle {vehicle_id} not found", vehicle_id=vehicle_id)

        base = existing or {"vehicle_id": vehicle_id}
        merged = merge_patch(copy.deepcopy(base), copy.deepcopy(patch))
        merged["vehicle_id"] = vehicle_id

        if existing is not None:
            unchanged = {k: v for k, v in merged.items() if k != "updated_at"} == {
                k: v for k, v in existing.items() if k != "updated_at"
            }
            if unchanged:
                return Vehicle.model_validate(existing)

        merged["updated_at"] = self._clock()
        try:
            vehicle = Vehicle.model_validate(merged)
        except ValidationError as exc:
            first = exc.errors()[0]
            raise InvalidInputError(f"invalid vehicle state: {first.get('msg')}", field="vehicle") from exc

        await self._backend.put_vehicle(vehicle_id, vehicle.to_document())
        return vehicle

    async def query(self, vehicle_filter: VehicleFilter | None = None) -> list[Vehicle]:
        """Vehicles matching *vehicle_filter*, most recently reported first."""
        vehicle_filter = vehicle_filter or VehicleFilter()
        vehicles: list[Vehicle] = []
        for document in await self._backend.list_vehicles():
            try:
                vehicle = Vehicle.model_validate(document)
            except ValidationError:
                _logger.debug("Skipping invalid stored vehicle document", exc_info=True)
                continue
            if vehicle_filter.matches(vehicle):
                vehicles.append(vehicle)
        vehicles.sort(key=lambda v: v.current_location.timestamp, reverse=True)
        return vehicles
