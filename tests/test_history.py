from __future__ import annotations

from datetime import timedelta

import pytest

from wastetrack.exceptions import InvalidInputError
from wastetrack.models.location import LocationSample
from wastetrack.models.vehicle import GeoPoint
from wastetrack.state.backends import MemoryBackend
from wastetrack.state.history import LocationHistoryLog


def _sample(vehicle_id: str, when, latitude: float = 12.97) -> LocationSample:
    return LocationSample(
        vehicle_id=vehicle_id,
        driver_ref="driver-001",
        location=GeoPoint(latitude=latitude, longitude=77.59),
        speed=20.0,
        timestamp=when,
    )


@pytest.mark.asyncio
async def test_query_returns_newest_first_with_limit(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(clock=clock))
    start = clock()
    for minute in range(5):
        await history.append(_sample("KA01AB1234", start + timedelta(minutes=minute), latitude=10 + minute))

    samples = await history.query("KA01AB1234", limit=3)

    assert [s.location.latitude for s in samples] == [14, 13, 12]


@pytest.mark.asyncio
async def test_query_range_is_inclusive(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(clock=clock))
    start = clock() - timedelta(hours=1)
    stamps = [start + timedelta(minutes=10 * i) for i in range(5)]
    for stamp in stamps:
        await history.append(_sample("KA01AB1234", stamp))

    samples = await history.query("KA01AB1234", start=stamps[1], end=stamps[3])

    assert [s.timestamp for s in samples] == [stamps[3], stamps[2], stamps[1]]


@pytest.mark.asyncio
async def test_samples_are_per_vehicle(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(clock=clock))
    await history.append(_sample("KA01AB1234", clock()))
    await history.append(_sample("KA01CD5678", clock()))

    assert len(await history.query("KA01AB1234")) == 1
    assert await history.query("KA99ZZ9999") == []


@pytest.mark.asyncio
async def test_samples_expire_after_retention(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(clock=clock))
    recorded = clock()
    await history.append(_sample("KA01AB1234", recorded))

    clock.advance(days=29)
    assert len(await history.query("KA01AB1234")) == 1

    clock.advance(days=1)
    assert await history.query("KA01AB1234") == []


@pytest.mark.asyncio
async def test_retention_is_configurable(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(retention_seconds=60, clock=clock))
    await history.append(_sample("KA01AB1234", clock()))

    clock.advance(seconds=61)
    assert await history.query("KA01AB1234") == []


@pytest.mark.asyncio
async def test_query_validates_limit_and_range(clock) -> None:
    history = LocationHistoryLog(MemoryBackend(clock=clock), default_limit=50)

    with pytest.raises(InvalidInputError):
        await history.query("KA01AB1234", limit=51)
    with pytest.raises(InvalidInputError):
        await history.query("KA01AB1234", limit=0)
    with pytest.raises(InvalidInputError):
        await history.query("KA01AB1234", start=clock(), end=clock() - timedelta(seconds=1))


def test_default_limit_bounds() -> None:
    with pytest.raises(ValueError):
        LocationHistoryLog(MemoryBackend(), default_limit=0)
    with pytest.raises(ValueError):
        LocationHistoryLog(MemoryBackend(), default_limit=1001)
