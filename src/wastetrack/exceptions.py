"""Custom exception hierarchy for wastetrack."""

from __future__ import annotations


class TrackerError(Exception):
    """Base exception for all wastetrack errors."""


class TrackerConfigError(TrackerError):
    """Invalid or missing configuration."""


class InvalidInputError(TrackerError):
    """Malformed or out-of-range request data.

    Always surfaced to the caller (HTTP 400) and never retried.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(TrackerError):
    """Referenced vehicle does not exist."""

    def __init__(self, message: str, *, vehicle_id: str = "") -> None:
        self.vehicle_id = vehicle_id
        super().__init__(message)


class StoreUnavailableError(TrackerError):
    """The durable store could not be reached.

    Distinct from "no results": callers with a fallback path (the ingest
    reconciler, the snapshot query service) recover from it locally instead
    of reporting an empty world.
    """

    def __init__(self, message: str, *, backend: str = "") -> None:
        self.backend = backend
        super().__init__(message)
