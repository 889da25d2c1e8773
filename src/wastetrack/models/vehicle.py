"""Vehicle model."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field, field_validator, model_validator

from wastetrack.ingestion.normalize import canonical_vehicle_id
from wastetrack.models._base import TrackerBaseModel, UtcDatetime


class VehicleStatus(StrEnum):
    IDLE = "idle"
    ON_ROUTE = "on_route"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"


class WasteType(StrEnum):
    ORGANIC = "organic"
    RECYCLABLE = "recyclable"
    HAZARDOUS = "hazardous"
    GENERAL = "general"


class GeoPoint(TrackerBaseModel):
    """A WGS84 coordinate pair."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class CurrentLocation(GeoPoint):
    """Last known position of a vehicle, stamped by the server."""

    timestamp: UtcDatetime
    accuracy: float = Field(default=0.0, ge=0)
    """Reported GPS accuracy in metres."""


class RoutePoint(GeoPoint):
    """A planned stop on a collection route."""

    address: str | None = None
    completed: bool = False
    completed_at: UtcDatetime | None = None


class Route(TrackerBaseModel):
    ward: str
    area: str
    total_stops: int = Field(ge=1)
    completed_stops: int = Field(default=0, ge=0)
    route_points: list[RoutePoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _stops_within_total(self) -> Route:
        if self.completed_stops > self.total_stops:
            raise ValueError("completed_stops cannot exceed total_stops")
        return self

    @property
    def completion_percentage(self) -> int:
        return round(self.completed_stops / self.total_stops * 100)


class Capacity(TrackerBaseModel):
    """Fill level of the vehicle's container, in percent of ``maximum``."""

    current: float = Field(default=0, ge=0, le=100)
    maximum: float = Field(default=100, ge=1)

    @model_validator(mode="after")
    def _current_within_maximum(self) -> Capacity:
        if self.current > self.maximum:
            raise ValueError("capacity.current cannot exceed capacity.maximum")
        return self


class Schedule(TrackerBaseModel):
    start_time: UtcDatetime
    estimated_end_time: UtcDatetime
    actual_end_time: UtcDatetime | None = None


class Vehicle(TrackerBaseModel):
    """A tracked collection vehicle.

    Only the ingest reconciler mutates vehicles (by writing a new value
    through the state store). ``actual_end_time`` is set exactly when the
    vehicle is ``completed``.
    """

    vehicle_id: str
    driver_ref: str | None = None
    """Driver directory key. Lookup only; the vehicle does not own the driver."""
    current_location: CurrentLocation
    status: VehicleStatus = VehicleStatus.IDLE
    route: Route
    waste_type: WasteType
    capacity: Capacity = Field(default_factory=Capacity)
    schedule: Schedule
    is_active: bool = True
    updated_at: UtcDatetime | None = None

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _canonical_vehicle_id(cls, value: object) -> str:
        return canonical_vehicle_id(value)

    @model_validator(mode="after")
    def _end_time_matches_status(self) -> Vehicle:
        completed = self.status == VehicleStatus.COMPLETED
        if completed != (self.schedule.actual_end_time is not None):
            raise ValueError("schedule.actual_end_time must be set if and only if status is completed")
        return self

    @property
    def route_completion_percentage(self) -> int:
        return self.route.completion_percentage
