"""Normalization helpers.

Centralizes the small coercions shared by models and the reconciler.
"""

from __future__ import annotations

import math
from typing import Any

from wastetrack._constants import VEHICLE_ID_PATTERN


def canonical_vehicle_id(value: Any) -> str:
    """Strip and upper-case a vehicle plate, validating its format.

    Raises :class:`ValueError` for empty or malformed identifiers.
    """
    if not isinstance(value, str):
        raise ValueError("vehicle id must be a string")
    vehicle_id = value.strip().upper()
    if not vehicle_id:
        raise ValueError("vehicle id must be non-empty")
    if not VEHICLE_ID_PATTERN.match(vehicle_id):
        raise ValueError(f"invalid vehicle id format: {vehicle_id!r}")
    return vehicle_id


def normalize_heading(value: float) -> float:
    """Wrap a heading in degrees into ``[0, 360)``."""
    heading = math.fmod(value, 360.0)
    if heading < 0:
        heading += 360.0
    # fmod of a tiny negative value can round back up to 360.0
    return 0.0 if heading >= 360.0 else heading


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *patch* into *target* in place.

    Nested dicts merge key by key; every other value (``None`` included)
    overwrites. Returns *target*.
    """
    for key, value in patch.items():
        existing = target.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            merge_patch(existing, value)
        else:
            target[key] = value
    return target
