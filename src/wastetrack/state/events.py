"""Normalized events.

Every ingest path (HTTP, WebSocket, MQTT) ends in one of these events. They
are the unit the broadcast fanout delivers to observers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wastetrack.ingestion.normalize import canonical_vehicle_id


class EventType(StrEnum):
    LOCATION = "vehicleLocationUpdate"
    STATUS = "vehicleStatusUpdate"
    EMERGENCY = "emergencyAlert"


class NormalizedEvent(BaseModel):
    """A server-validated, server-timestamped ingest result."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    vehicle_id: str = Field(..., description="Canonical vehicle plate")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    sequence: int = Field(default=0, ge=0, description="Per-vehicle production order")
    data: dict[str, Any] = Field(default_factory=dict, description="camelCase event payload")
    persisted: bool = True

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _normalize_vehicle_id(cls, value: Any) -> str:
        return canonical_vehicle_id(value)

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_wire(self) -> dict[str, Any]:
        """Frame pushed to observers: ``{"event": ..., "data": {...}}``."""
        return {
            "event": self.type.value,
            "data": {
                **self.data,
                "vehicleId": self.vehicle_id,
                "timestamp": self.timestamp.isoformat(),
                "sequence": self.sequence,
                "persisted": self.persisted,
            },
        }
