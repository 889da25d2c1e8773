from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from wastetrack.models.vehicle import (
    Capacity,
    CurrentLocation,
    Route,
    Schedule,
    Vehicle,
    VehicleStatus,
    WasteType,
)


class FakeClock:
    """Settable clock shared by the store, history and reconciler under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 8, 0, tzinfo=UTC))


@pytest.fixture
def make_vehicle(clock: FakeClock) -> Callable[..., Vehicle]:
    def _make(
        vehicle_id: str = "KA01AB1234",
        *,
        latitude: float = 12.9716,
        longitude: float = 77.5946,
        status: VehicleStatus = VehicleStatus.ON_ROUTE,
        total_stops: int = 10,
        completed_stops: int = 0,
        driver_ref: str | None = "driver-001",
        reported_at: datetime | None = None,
        **overrides: Any,
    ) -> Vehicle:
        now = clock()
        actual_end = now if status == VehicleStatus.COMPLETED else None
        return Vehicle(
            vehicle_id=vehicle_id,
            driver_ref=driver_ref,
            current_location=CurrentLocation(
                latitude=latitude,
                longitude=longitude,
                timestamp=reported_at or now,
            ),
            status=status,
            route=Route(ward="Ward 1", area="Test Area", total_stops=total_stops, completed_stops=completed_stops),
            waste_type=WasteType.GENERAL,
            capacity=Capacity(current=10),
            schedule=Schedule(
                start_time=now,
                estimated_end_time=now + timedelta(hours=4),
                actual_end_time=actual_end,
            ),
            **overrides,
        )

    return _make
