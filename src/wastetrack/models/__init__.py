"""Data models for vehicles, location samples, and read projections."""

from wastetrack.models._base import TrackerBaseModel, UtcDatetime, parse_timestamp
from wastetrack.models.location import LocationSample
from wastetrack.models.summary import VehicleSummary
from wastetrack.models.vehicle import (
    Capacity,
    CurrentLocation,
    GeoPoint,
    Route,
    RoutePoint,
    Schedule,
    Vehicle,
    VehicleStatus,
    WasteType,
)

__all__ = [
    "Capacity",
    "CurrentLocation",
    "GeoPoint",
    "LocationSample",
    "Route",
    "RoutePoint",
    "Schedule",
    "TrackerBaseModel",
    "UtcDatetime",
    "Vehicle",
    "VehicleStatus",
    "VehicleSummary",
    "WasteType",
    "parse_timestamp",
]
