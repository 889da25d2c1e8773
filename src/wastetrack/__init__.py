"""wastetrack - real-time location/status core for waste-collection fleets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wastetrack")
except PackageNotFoundError:
    __version__ = "0+local"

from wastetrack.broadcast import BroadcastFanout, SubscriptionHandle
from wastetrack.config import MqttSettings, TrackerConfig
from wastetrack.exceptions import (
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
    TrackerConfigError,
    TrackerError,
)
from wastetrack.ingestion.reconciler import IngestReconciler, IngestResult
from wastetrack.models import (
    Capacity,
    CurrentLocation,
    GeoPoint,
    LocationSample,
    Route,
    Schedule,
    Vehicle,
    VehicleStatus,
    VehicleSummary,
    WasteType,
)
from wastetrack.query import SnapshotQueryService, SnapshotResult
from wastetrack.state.events import EventType, NormalizedEvent
from wastetrack.tracker import TrackingCore

__all__ = [
    "__version__",
    "BroadcastFanout",
    "Capacity",
    "CurrentLocation",
    "EventType",
    "GeoPoint",
    "IngestReconciler",
    "IngestResult",
    "InvalidInputError",
    "LocationSample",
    "MqttSettings",
    "NormalizedEvent",
    "NotFoundError",
    "Route",
    "Schedule",
    "SnapshotQueryService",
    "SnapshotResult",
    "StoreUnavailableError",
    "SubscriptionHandle",
    "TrackerConfig",
    "TrackerConfigError",
    "TrackerError",
    "TrackingCore",
    "Vehicle",
    "VehicleStatus",
    "VehicleSummary",
    "WasteType",
]
