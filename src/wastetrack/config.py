"""Service configuration for wastetrack."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from wastetrack._constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_OBSERVER_QUEUE_SIZE,
    HISTORY_RETENTION_DAYS,
    MAX_HISTORY_LIMIT,
)
from wastetrack.exceptions import TrackerConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise TrackerConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Optional MQTT driver-ingest channel.

    Drivers publish JSON payloads to ``<topic_prefix>/<vehicleId>/location``,
    ``.../status`` and ``.../emergency``.
    """

    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    topic_prefix: str = "wastetrack"
    keepalive: int = 60
    username: str | None = None
    password: str | None = None


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Service configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP/WebSocket server binds to.
    port : int
        HTTP/WebSocket server port.
    store_url : str
        Durable store location. ``memory://`` keeps state in-process,
        ``redis://host:port/db`` selects the Redis backend.
    history_retention_days : int
        Days a location sample is retained before the store expires it.
    history_limit : int
        Default (and maximum) number of samples returned by a history query.
    observer_queue_size : int
        Per-observer outbound queue bound. When full, the oldest queued
        event is dropped.
    fallback_enabled : bool
        Serve the demo vehicle set when the store is unavailable.
    seed_demo_data : bool
        Register the demo vehicles on startup.
    mqtt : MqttSettings
        Optional MQTT ingest channel.
    """

    host: str = "0.0.0.0"
    port: int = 3001
    store_url: str = "memory://"
    history_retention_days: int = HISTORY_RETENTION_DAYS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    observer_queue_size: int = DEFAULT_OBSERVER_QUEUE_SIZE
    fallback_enabled: bool = True
    seed_demo_data: bool = False
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.history_retention_days <= 0:
            raise TrackerConfigError("history_retention_days must be positive")
        if not 1 <= self.history_limit <= MAX_HISTORY_LIMIT:
            raise TrackerConfigError(f"history_limit must be between 1 and {MAX_HISTORY_LIMIT}")
        if self.observer_queue_size < 1:
            raise TrackerConfigError("observer_queue_size must be at least 1")

    @property
    def history_retention_seconds(self) -> float:
        return self.history_retention_days * 24 * 3600.0

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from ``TRACKER_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        if "TRACKER_MQTT_ENABLED" in env:
            mqtt_kwargs["enabled"] = _env_bool(env.get("TRACKER_MQTT_ENABLED"), False)
        _ENV_MQTT_MAP = {
            "TRACKER_MQTT_HOST": "host",
            "TRACKER_MQTT_TOPIC_PREFIX": "topic_prefix",
            "TRACKER_MQTT_USERNAME": "username",
            "TRACKER_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        for env_key, field_name in (("TRACKER_MQTT_PORT", "port"), ("TRACKER_MQTT_KEEPALIVE", "keepalive")):
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = _env_number(env_key, val, int)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        _ENV_CONFIG_MAP = {
            "TRACKER_HOST": "host",
            "TRACKER_STORE_URL": "store_url",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "TRACKER_PORT": "port",
            "TRACKER_HISTORY_RETENTION_DAYS": "history_retention_days",
            "TRACKER_HISTORY_LIMIT": "history_limit",
            "TRACKER_OBSERVER_QUEUE_SIZE": "observer_queue_size",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, int)

        if "fallback_enabled" not in overrides:
            config_kwargs["fallback_enabled"] = _env_bool(env.get("TRACKER_FALLBACK_ENABLED"), True)
        if "seed_demo_data" not in overrides:
            config_kwargs["seed_demo_data"] = _env_bool(env.get("TRACKER_SEED_DEMO_DATA"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
