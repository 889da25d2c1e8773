"""Snapshot query service.

Pull-based reads of the current fleet state, used for initial page loads
and as the polling fallback for clients that missed pushes.

When the store is unreachable, list reads return the configured fallback
data set flagged ``degraded`` instead of failing, so dashboards keep
rendering during storage outages.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from wastetrack._constants import STORE_UNAVAILABLE_REASON, UNKNOWN_DRIVER_NAME
from wastetrack.directory import DriverDirectory
from wastetrack.exceptions import StoreUnavailableError
from wastetrack.models.location import LocationSample
from wastetrack.models.requests import HistoryQuery, NearbyQuery, VehicleIdRequest, validate_request
from wastetrack.models.summary import VehicleSummary
from wastetrack.models.vehicle import Vehicle, VehicleStatus
from wastetrack.state.history import LocationHistoryLog
from wastetrack.state.store import BoundingBox, VehicleFilter, VehicleStateStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotResult:
    """A list read. ``degraded`` results carry fallback data and a reason."""

    data: list[VehicleSummary] = field(default_factory=list)
    degraded: bool = False
    reason: str | None = None

    @property
    def count(self) -> int:
        return len(self.data)


class SnapshotQueryService:
    """Read-only projections over the state store and history log."""

    def __init__(
        self,
        store: VehicleStateStore,
        history: LocationHistoryLog,
        directory: DriverDirectory,
        *,
        fallback: Callable[[], Sequence[VehicleSummary]] | None = None,
    ) -> None:
        self._store = store
        self._history = history
        self._directory = directory
        self._fallback = fallback

    async def _driver_name(self, driver_ref: str | None, cache: dict[str, str]) -> str:
        if not driver_ref:
            return UNKNOWN_DRIVER_NAME
        cached = cache.get(driver_ref)
        if cached is not None:
            return cached
        try:
            name = await self._directory.resolve_display_name(driver_ref)
        except Exception:
            # One broken lookup must not fail the whole query.
            _logger.debug("Driver lookup failed for %s", driver_ref, exc_info=True)
            name = None
        resolved = name or UNKNOWN_DRIVER_NAME
        cache[driver_ref] = resolved
        return resolved

    async def _summarize(self, vehicles: Iterable[Vehicle]) -> list[VehicleSummary]:
        cache: dict[str, str] = {}
        return [
            VehicleSummary.from_vehicle(vehicle, await self._driver_name(vehicle.driver_ref, cache))
            for vehicle in vehicles
        ]

    def _degraded(self, exc: StoreUnavailableError, keep: Callable[[VehicleSummary], bool]) -> SnapshotResult:
        _logger.warning("Serving fallback snapshot: %s", exc)
        data = [summary for summary in self._fallback() if keep(summary)] if self._fallback is not None else []
        return SnapshotResult(data=data, degraded=True, reason=STORE_UNAVAILABLE_REASON)

    async def list_active(
        self,
        exclude_statuses: Iterable[VehicleStatus] = (VehicleStatus.MAINTENANCE,),
    ) -> SnapshotResult:
        """Active vehicles not in *exclude_statuses*, latest report first."""
        excluded = frozenset(VehicleStatus(status) for status in exclude_statuses)
        try:
            vehicles = await self._store.query(VehicleFilter(exclude_statuses=excluded, active_only=True))
        except StoreUnavailableError as exc:
            return self._degraded(exc, lambda summary: summary.status not in excluded)
        return SnapshotResult(data=await self._summarize(vehicles))

    async def find_nearby(self, latitude: float, longitude: float, radius_km: float = 5.0) -> SnapshotResult:
        """Vehicles inside the bounding box approximating *radius_km*."""
        query = validate_request(
            NearbyQuery,
            {"latitude": latitude, "longitude": longitude, "radius_km": radius_km},
        )
        bbox = BoundingBox.around(query.latitude, query.longitude, query.radius_km)
        try:
            vehicles = await self._store.query(VehicleFilter(bbox=bbox))
        except StoreUnavailableError as exc:
            return self._degraded(exc, lambda summary: bbox.contains(summary.lat, summary.lng))
        return SnapshotResult(data=await self._summarize(vehicles))

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        """Full stored state of one vehicle.

        Raises :class:`StoreUnavailableError`; there is no fallback for
        detail reads.
        """
        request = validate_request(VehicleIdRequest, {"vehicle_id": vehicle_id})
        return await self._store.get(request.vehicle_id)

    async def get_one(self, vehicle_id: str) -> VehicleSummary | None:
        """Summary of one vehicle, or ``None`` when it is not registered.

        While the store is unavailable the fallback entry with the same id is
        returned if there is one; otherwise the error propagates.
        """
        request = validate_request(VehicleIdRequest, {"vehicle_id": vehicle_id})
        try:
            vehicle = await self._store.get(request.vehicle_id)
        except StoreUnavailableError:
            if self._fallback is not None:
                for summary in self._fallback():
                    if summary.vehicle_id == request.vehicle_id:
                        return summary
            raise
        if vehicle is None:
            return None
        return (await self._summarize([vehicle]))[0]

    async def history(
        self,
        vehicle_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[LocationSample]:
        """Location samples newest first. Store errors propagate."""
        payload: dict[str, object] = {"vehicle_id": vehicle_id, "start_date": start, "end_date": end}
        if limit is not None:
            payload["limit"] = limit
        query = validate_request(HistoryQuery, payload)
        return await self._history.query(
            query.vehicle_id,
            start=query.start_date,
            end=query.end_date,
            limit=query.limit if limit is not None else None,
        )
