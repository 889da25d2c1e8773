"""Driver directory collaborator.

The tracking core only needs one capability from the user directory:
turning a driver reference into a display name.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class DriverDirectory(Protocol):
    async def resolve_display_name(self, driver_ref: str) -> str | None: ...


class StaticDriverDirectory:
    """Directory backed by an in-memory mapping of driver ref to name."""

    def __init__(self, names: Mapping[str, str] | None = None) -> None:
        self._names = dict(names or {})

    def register(self, driver_ref: str, display_name: str) -> None:
        self._names[driver_ref] = display_name

    async def resolve_display_name(self, driver_ref: str) -> str | None:
        return self._names.get(driver_ref)
