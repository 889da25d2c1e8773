"""Pydantic request models for the ingest and query entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
Validation happens once, at the boundary, and the first violation is
reported as :class:`wastetrack.exceptions.InvalidInputError`.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator

from wastetrack._constants import DEFAULT_HISTORY_LIMIT, DEFAULT_NEARBY_RADIUS_KM, MAX_HISTORY_LIMIT
from wastetrack.exceptions import InvalidInputError
from wastetrack.ingestion.normalize import canonical_vehicle_id, normalize_heading
from wastetrack.models._base import TrackerBaseModel, UtcDatetime
from wastetrack.models.vehicle import VehicleStatus

TRequest = TypeVar("TRequest", bound=TrackerBaseModel)


def validate_request(model_cls: type[TRequest], payload: Any) -> TRequest:
    """Validate *payload* into *model_cls* or raise ``InvalidInputError``."""
    if not isinstance(payload, dict):
        raise InvalidInputError("request body must be a JSON object")
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid value")
        raise InvalidInputError(f"{field}: {message}" if field else message, field=field) from exc


class VehicleIdRequest(TrackerBaseModel):
    """Request addressed to a single vehicle."""

    vehicle_id: str

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _canonical_vehicle_id(cls, value: Any) -> str:
        return canonical_vehicle_id(value)


class LocationUpdateRequest(VehicleIdRequest):
    """A driver position report.

    Client-supplied timestamps are ignored; the server stamps every write.
    """

    latitude: float = Field(ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))
    speed: float | None = Field(default=None, ge=0)
    heading: float | None = None
    accuracy: float | None = Field(default=None, ge=0)

    @field_validator("latitude", "longitude", "speed", "heading", "accuracy", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be a number")
        return value

    @field_validator("heading")
    @classmethod
    def _wrap_heading(cls, value: float | None) -> float | None:
        return None if value is None else normalize_heading(value)


class StatusUpdateRequest(VehicleIdRequest):
    status: VehicleStatus
    completed_stops: int | None = None
    """Clamped into ``[0, total_stops]`` by the reconciler."""


class EmergencyAlertRequest(VehicleIdRequest):
    message: str = "Emergency reported"
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def _both_coordinates_or_none(self) -> EmergencyAlertRequest:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class ListVehiclesQuery(TrackerBaseModel):
    exclude_maintenance: bool = True


class HistoryQuery(VehicleIdRequest):
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT)

    @model_validator(mode="after")
    def _ordered_range(self) -> HistoryQuery:
        if self.start_date is not None and self.end_date is not None and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class NearbyQuery(TrackerBaseModel):
    latitude: float = Field(ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))
    radius_km: float = Field(
        default=DEFAULT_NEARBY_RADIUS_KM,
        gt=0,
        validation_alias=AliasChoices("radius", "radiusKm", "radius_km"),
    )
