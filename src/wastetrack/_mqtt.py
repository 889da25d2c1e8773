"""Internal MQTT parsing and runtime helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, cast

import paho.mqtt.client as mqtt

from wastetrack.config import MqttSettings
from wastetrack.exceptions import TrackerError


class MqttMessageKind(StrEnum):
    LOCATION = "location"
    STATUS = "status"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class MqttMessage:
    """A decoded driver message.

    ``vehicle_id`` comes from the topic and is not yet validated.
    """

    kind: MqttMessageKind
    vehicle_id: str
    topic: str
    payload: dict[str, Any]


def subscription_topic(prefix: str) -> str:
    return f"{prefix.rstrip('/')}/+/+"


def parse_topic(topic: str, prefix: str) -> tuple[str, MqttMessageKind] | None:
    """Split ``<prefix>/<vehicleId>/<kind>``; ``None`` for foreign topics."""
    base = prefix.rstrip("/") + "/"
    if not topic.startswith(base):
        return None
    parts = topic[len(base) :].split("/")
    if len(parts) != 2 or not parts[0]:
        return None
    try:
        kind = MqttMessageKind(parts[1])
    except ValueError:
        return None
    return parts[0], kind


def decode_mqtt_payload(payload: bytes) -> dict[str, Any]:
    """Parse a UTF-8 JSON object payload."""
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise TrackerError("MQTT payload is not a JSON object")
    return parsed


def decode_mqtt_message(topic: str, payload: bytes, prefix: str) -> MqttMessage | None:
    """Decode a raw message, or ``None`` when the topic is not ours.

    The topic's vehicle id wins over any ``vehicleId`` in the payload.
    """
    parsed_topic = parse_topic(topic, prefix)
    if parsed_topic is None:
        return None
    vehicle_id, kind = parsed_topic
    body = decode_mqtt_payload(payload)
    body["vehicleId"] = vehicle_id
    return MqttMessage(kind=kind, vehicle_id=vehicle_id, topic=topic, payload=body)


class TrackerMqttRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        on_message: Callable[[MqttMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def handle_raw(self, topic: str, payload: bytes) -> None:
        """Decode one message and hand it to the loop. Called on the paho thread."""
        try:
            message = decode_mqtt_message(topic, payload, self._settings.topic_prefix)
        except (TrackerError, ValueError):
            self._logger.debug("MQTT payload parse failure topic=%s", topic, exc_info=True)
            return
        if message is None:
            self._logger.debug("Ignoring MQTT message on foreign topic=%s", topic)
            return
        self._loop.call_soon_threadsafe(self._on_message, message)

    def start(self) -> None:
        """Connect and subscribe to the driver topics."""
        self.stop()
        settings = self._settings
        topic = subscription_topic(settings.topic_prefix)
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s",
            settings.host,
            settings.port,
            topic,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id="",
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", topic)
            c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_raw(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
