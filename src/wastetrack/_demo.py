"""Demo fleet.

Seeds a fresh deployment and doubles as the fallback data set served while
the store is unavailable.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from wastetrack.models.summary import VehicleSummary
from wastetrack.models.vehicle import (
    Capacity,
    CurrentLocation,
    Route,
    Schedule,
    Vehicle,
    VehicleStatus,
    WasteType,
)

DEMO_DRIVERS: dict[str, str] = {
    "driver-001": "John Smith",
    "driver-002": "Mike Johnson",
    "driver-003": "Sarah Wilson",
}


def demo_vehicles(now: datetime | None = None) -> list[Vehicle]:
    now = now or datetime.now(UTC)
    return [
        Vehicle(
            vehicle_id="KA01AB1234",
            driver_ref="driver-001",
            current_location=CurrentLocation(latitude=12.9716, longitude=77.5946, timestamp=now),
            status=VehicleStatus.ON_ROUTE,
            route=Route(ward="Ward 12", area="Residential Area", total_stops=30, completed_stops=24),
            waste_type=WasteType.ORGANIC,
            capacity=Capacity(current=65, maximum=100),
            schedule=Schedule(start_time=now, estimated_end_time=now + timedelta(hours=5)),
        ),
        Vehicle(
            vehicle_id="KA01CD5678",
            driver_ref="driver-002",
            current_location=CurrentLocation(latitude=12.9800, longitude=77.6000, timestamp=now),
            status=VehicleStatus.COLLECTING,
            route=Route(ward="Ward 8", area="Commercial Area", total_stops=20, completed_stops=12),
            waste_type=WasteType.RECYCLABLE,
            capacity=Capacity(current=40, maximum=100),
            schedule=Schedule(start_time=now, estimated_end_time=now + timedelta(hours=4)),
        ),
        Vehicle(
            vehicle_id="KA01EF9012",
            driver_ref="driver-003",
            current_location=CurrentLocation(latitude=12.9500, longitude=77.5800, timestamp=now),
            status=VehicleStatus.COMPLETED,
            route=Route(ward="Ward 5", area="Industrial Area", total_stops=15, completed_stops=15),
            waste_type=WasteType.HAZARDOUS,
            capacity=Capacity(current=90, maximum=100),
            schedule=Schedule(
                start_time=now - timedelta(hours=6),
                estimated_end_time=now - timedelta(hours=1),
                actual_end_time=now - timedelta(minutes=30),
            ),
        ),
    ]


def demo_summaries(now: datetime | None = None) -> list[VehicleSummary]:
    return [
        VehicleSummary.from_vehicle(vehicle, DEMO_DRIVERS.get(vehicle.driver_ref or "", "Unknown"))
        for vehicle in demo_vehicles(now)
    ]
