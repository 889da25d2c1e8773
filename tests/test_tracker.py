from __future__ import annotations

import pytest

from wastetrack.config import TrackerConfig
from wastetrack.exceptions import StoreUnavailableError
from wastetrack.state.backends import MemoryBackend
from wastetrack.tracker import TrackingCore


@pytest.mark.asyncio
async def test_start_seeds_demo_fleet(clock) -> None:
    async with TrackingCore(TrackerConfig(seed_demo_data=True), backend=MemoryBackend(clock=clock), clock=clock) as core:
        result = await core.snapshots.list_active()

        assert result.count == 3
        assert {s.driver_name for s in result.data} == {"John Smith", "Mike Johnson", "Sarah Wilson"}
        assert await core.store_available() is True


@pytest.mark.asyncio
async def test_seeding_keeps_existing_vehicles(clock) -> None:
    backend = MemoryBackend(clock=clock)
    core = TrackingCore(TrackerConfig(seed_demo_data=True), backend=backend, clock=clock)
    await core.start()
    await core.reconciler.apply_status_update("KA01AB1234", "maintenance")

    await core.seed_demo_data()

    vehicle = await core.store.get("KA01AB1234")
    assert vehicle is not None
    assert vehicle.status == "maintenance"
    await core.close()


@pytest.mark.asyncio
async def test_seeding_tolerates_unavailable_store(clock) -> None:
    backend = MemoryBackend(clock=clock)
    backend.available = False
    core = TrackingCore(TrackerConfig(seed_demo_data=True), backend=backend, clock=clock)

    await core.start()

    assert await core.store_available() is False
    with pytest.raises(StoreUnavailableError):
        await core.store.query()
    await core.close()


@pytest.mark.asyncio
async def test_end_to_end_location_then_nearby(clock) -> None:
    async with TrackingCore(TrackerConfig(seed_demo_data=True), backend=MemoryBackend(clock=clock), clock=clock) as core:
        await core.reconciler.apply_location_update("KA01EF9012", 28.6139, 77.2090)

        nearby = await core.snapshots.find_nearby(28.61, 77.21, radius_km=2)
        history = await core.snapshots.history("KA01EF9012")

    assert [s.vehicle_id for s in nearby.data] == ["KA01EF9012"]
    assert len(history) == 1
    assert history[0].timestamp == clock()


@pytest.mark.asyncio
async def test_location_round_trip_through_get_one(clock) -> None:
    async with TrackingCore(TrackerConfig(seed_demo_data=True), backend=MemoryBackend(clock=clock), clock=clock) as core:
        await core.reconciler.apply_location_update("KA01AB1234", 12.9716, 77.5946)
        summary = await core.snapshots.get_one("KA01AB1234")

        near_self = await core.snapshots.find_nearby(12.9716, 77.5946, radius_km=5)
        near_origin = await core.snapshots.find_nearby(0.0, 0.0, radius_km=5)

    assert summary is not None
    assert (summary.lat, summary.lng) == (12.9716, 77.5946)
    assert summary.last_update == clock()
    assert "KA01AB1234" in {s.vehicle_id for s in near_self.data}
    assert near_origin.data == []


@pytest.mark.asyncio
async def test_completed_end_time_not_in_future(clock) -> None:
    async with TrackingCore(TrackerConfig(seed_demo_data=True), backend=MemoryBackend(clock=clock), clock=clock) as core:
        result = await core.reconciler.apply_status_update("KA01AB1234", "completed")

    assert result.vehicle is not None
    assert result.vehicle.schedule.actual_end_time is not None
    assert result.vehicle.schedule.actual_end_time <= clock()
