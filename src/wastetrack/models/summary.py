"""Read projection served to dashboards and map views."""

from __future__ import annotations

from pydantic import Field

from wastetrack.models._base import TrackerBaseModel, UtcDatetime
from wastetrack.models.vehicle import Capacity, Route, Schedule, Vehicle, VehicleStatus, WasteType


class VehicleSummary(TrackerBaseModel):
    """A vehicle flattened for display, with the driver name resolved."""

    vehicle_id: str
    driver_name: str
    lat: float
    lng: float
    status: VehicleStatus
    waste_type: WasteType
    route: Route
    capacity: Capacity
    last_update: UtcDatetime
    schedule: Schedule
    route_completion_percentage: int = Field(default=0, ge=0, le=100)

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle, driver_name: str) -> VehicleSummary:
        return cls(
            vehicle_id=vehicle.vehicle_id,
            driver_name=driver_name,
            lat=vehicle.current_location.latitude,
            lng=vehicle.current_location.longitude,
            status=vehicle.status,
            waste_type=vehicle.waste_type,
            route=vehicle.route,
            capacity=vehicle.capacity,
            last_update=vehicle.current_location.timestamp,
            schedule=vehicle.schedule,
            route_completion_percentage=vehicle.route_completion_percentage,
        )
