"""Location history sample model."""

from __future__ import annotations

from pydantic import Field, field_validator

from wastetrack.ingestion.normalize import canonical_vehicle_id
from wastetrack.models._base import TrackerBaseModel, UtcDatetime
from wastetrack.models.vehicle import GeoPoint


class LocationSample(TrackerBaseModel):
    """An immutable raw position report.

    Parameters
    ----------
    vehicle_id : str
        Canonical plate of the reporting vehicle.
    driver_ref : str or None
        Driver assigned to the vehicle when the sample was taken.
    location : GeoPoint
        Reported position.
    speed : float
        Speed in km/h.
    heading : float
        Course over ground in degrees, ``[0, 360)``.
    accuracy : float
        GPS accuracy in metres.
    timestamp : datetime
        Server-side receive time.
    """

    vehicle_id: str
    driver_ref: str | None = None
    location: GeoPoint
    speed: float = Field(default=0.0, ge=0)
    heading: float = Field(default=0.0, ge=0, lt=360)
    accuracy: float = Field(default=0.0, ge=0)
    timestamp: UtcDatetime

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _canonical_vehicle_id(cls, value: object) -> str:
        return canonical_vehicle_id(value)
