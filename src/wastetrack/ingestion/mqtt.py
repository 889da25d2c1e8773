"""MQTT ingestion.

Routes decoded driver messages from the MQTT runtime to the reconciler.
Messages arrive on the event loop in broker order; each one becomes a task,
and the reconciler's per-vehicle lock (FIFO) keeps a vehicle's updates in
that order.
"""

from __future__ import annotations

import asyncio
import logging

from wastetrack._mqtt import MqttMessage, MqttMessageKind, TrackerMqttRuntime
from wastetrack.config import MqttSettings
from wastetrack.exceptions import TrackerError
from wastetrack.ingestion.reconciler import IngestReconciler

_logger = logging.getLogger(__name__)


class MqttIngest:
    def __init__(self, reconciler: IngestReconciler, settings: MqttSettings) -> None:
        self._reconciler = reconciler
        self._settings = settings
        self._runtime: TrackerMqttRuntime | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def runtime(self) -> TrackerMqttRuntime | None:
        return self._runtime

    def dispatch(self, message: MqttMessage) -> asyncio.Task[None]:
        """Schedule handling of *message*. Must run on the event loop."""
        task = asyncio.get_running_loop().create_task(self._handle(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _handle(self, message: MqttMessage) -> None:
        try:
            if message.kind == MqttMessageKind.LOCATION:
                await self._reconciler.handle_location_payload(message.payload)
            elif message.kind == MqttMessageKind.STATUS:
                await self._reconciler.handle_status_payload(message.payload)
            else:
                await self._reconciler.handle_emergency_payload(message.payload)
        except TrackerError as exc:
            # There is no sender to answer on MQTT; rejected messages are dropped.
            _logger.debug("Rejected MQTT %s for %s: %s", message.kind.value, message.vehicle_id, exc)

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        runtime = TrackerMqttRuntime(loop=loop, settings=self._settings, on_message=self.dispatch, logger=_logger)
        try:
            await loop.run_in_executor(None, runtime.start)
        except OSError:
            _logger.warning("MQTT runtime start failed; driver MQTT ingest disabled", exc_info=True)
            return
        self._runtime = runtime

    async def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
        pending = list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
