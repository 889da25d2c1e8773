from __future__ import annotations

import pytest

from wastetrack.ingestion.normalize import canonical_vehicle_id, clamp, merge_patch, normalize_heading


def test_canonical_vehicle_id_strips_and_uppercases() -> None:
    assert canonical_vehicle_id("  ka01ab1234\n") == "KA01AB1234"


@pytest.mark.parametrize("value", ["", "   ", "KA1AB1234", "KA01AB123", "KA01-AB-1234", 1234, None])
def test_canonical_vehicle_id_rejects_malformed(value: object) -> None:
    with pytest.raises(ValueError):
        canonical_vehicle_id(value)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0.0, 0.0), (359.5, 359.5), (360.0, 0.0), (725.0, 5.0), (-90.0, 270.0), (-1e-20, 0.0)],
)
def test_normalize_heading(raw: float, expected: float) -> None:
    assert normalize_heading(raw) == pytest.approx(expected)
    assert 0.0 <= normalize_heading(raw) < 360.0


def test_clamp() -> None:
    assert clamp(-3, 0, 10) == 0
    assert clamp(4, 0, 10) == 4
    assert clamp(99, 0, 10) == 10


def test_merge_patch_merges_nested_and_overwrites_with_none() -> None:
    target = {"route": {"ward": "W1", "completed_stops": 2}, "schedule": {"actual_end_time": "t"}, "status": "idle"}
    merge_patch(target, {"route": {"completed_stops": 5}, "schedule": {"actual_end_time": None}})

    assert target == {
        "route": {"ward": "W1", "completed_stops": 5},
        "schedule": {"actual_end_time": None},
        "status": "idle",
    }
