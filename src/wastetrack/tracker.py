"""Composition root for the tracking core."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from wastetrack._demo import DEMO_DRIVERS, demo_summaries, demo_vehicles
from wastetrack.broadcast.fanout import BroadcastFanout
from wastetrack.config import TrackerConfig
from wastetrack.directory import DriverDirectory, StaticDriverDirectory
from wastetrack.exceptions import StoreUnavailableError
from wastetrack.ingestion.mqtt import MqttIngest
from wastetrack.ingestion.reconciler import IngestReconciler
from wastetrack.query.snapshot import SnapshotQueryService
from wastetrack.state.backends import StorageBackend, make_backend
from wastetrack.state.history import LocationHistoryLog
from wastetrack.state.store import VehicleStateStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackingCore:
    """Wires the store, history, reconciler, fanout and query service.

    Usage::

        async with TrackingCore(TrackerConfig.from_env()) as core:
            await core.reconciler.apply_location_update("KA01AB1234", 12.97, 77.59)
            result = await core.snapshots.list_active()
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        backend: StorageBackend | None = None,
        directory: DriverDirectory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config or TrackerConfig()
        self.backend: StorageBackend = backend or make_backend(
            self.config.store_url,
            retention_seconds=self.config.history_retention_seconds,
            clock=clock,
        )
        if directory is None:
            directory = StaticDriverDirectory(DEMO_DRIVERS if self.config.seed_demo_data else None)
        self.directory = directory
        self.store = VehicleStateStore(self.backend, clock=clock)
        self.history = LocationHistoryLog(self.backend, default_limit=self.config.history_limit)
        self.fanout = BroadcastFanout(queue_size=self.config.observer_queue_size)
        self.reconciler = IngestReconciler(self.store, self.history, self.fanout, clock=clock)
        self.snapshots = SnapshotQueryService(
            self.store,
            self.history,
            self.directory,
            fallback=demo_summaries if self.config.fallback_enabled else None,
        )
        self._mqtt: MqttIngest | None = None
        self._clock = clock

    async def __aenter__(self) -> TrackingCore:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        if self.config.seed_demo_data:
            await self.seed_demo_data()
        if self.config.mqtt.enabled:
            self._mqtt = MqttIngest(self.reconciler, self.config.mqtt)
            await self._mqtt.start()

    async def close(self) -> None:
        if self._mqtt is not None:
            await self._mqtt.stop()
            self._mqtt = None
        await self.fanout.close()
        await self.backend.close()

    async def seed_demo_data(self) -> None:
        """Register the demo fleet, leaving already-known vehicles untouched."""
        try:
            for vehicle in demo_vehicles(self._clock()):
                if await self.store.get(vehicle.vehicle_id) is None:
                    await self.store.register(vehicle)
        except StoreUnavailableError as exc:
            _logger.warning("Demo data not seeded: %s", exc)

    async def store_available(self) -> bool:
        return await self.backend.ping()
