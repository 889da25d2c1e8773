from __future__ import annotations

import pytest

from wastetrack.config import MqttSettings, TrackerConfig
from wastetrack.exceptions import TrackerConfigError
from wastetrack.state.backends import MemoryBackend, RedisBackend, make_backend

_ENV_KEYS = (
    "TRACKER_HOST",
    "TRACKER_PORT",
    "TRACKER_STORE_URL",
    "TRACKER_HISTORY_RETENTION_DAYS",
    "TRACKER_HISTORY_LIMIT",
    "TRACKER_OBSERVER_QUEUE_SIZE",
    "TRACKER_FALLBACK_ENABLED",
    "TRACKER_SEED_DEMO_DATA",
    "TRACKER_MQTT_ENABLED",
    "TRACKER_MQTT_HOST",
    "TRACKER_MQTT_PORT",
    "TRACKER_MQTT_TOPIC_PREFIX",
    "TRACKER_MQTT_KEEPALIVE",
    "TRACKER_MQTT_USERNAME",
    "TRACKER_MQTT_PASSWORD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = TrackerConfig.from_env()

    assert config.port == 3001
    assert config.store_url == "memory://"
    assert config.history_retention_days == 30
    assert config.history_retention_seconds == 30 * 24 * 3600
    assert config.history_limit == 1000
    assert config.fallback_enabled is True
    assert config.seed_demo_data is False
    assert config.mqtt == MqttSettings()


def test_environment_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_PORT", "8080")
    monkeypatch.setenv("TRACKER_STORE_URL", "redis://cache:6379/1")
    monkeypatch.setenv("TRACKER_HISTORY_RETENTION_DAYS", "7")
    monkeypatch.setenv("TRACKER_FALLBACK_ENABLED", "no")
    monkeypatch.setenv("TRACKER_MQTT_ENABLED", "1")
    monkeypatch.setenv("TRACKER_MQTT_PORT", "8883")
    monkeypatch.setenv("TRACKER_MQTT_TOPIC_PREFIX", "city/fleet")

    config = TrackerConfig.from_env()

    assert config.port == 8080
    assert config.store_url == "redis://cache:6379/1"
    assert config.history_retention_days == 7
    assert config.fallback_enabled is False
    assert config.mqtt.enabled is True
    assert config.mqtt.port == 8883
    assert config.mqtt.topic_prefix == "city/fleet"


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_PORT", "8080")
    monkeypatch.setenv("TRACKER_SEED_DEMO_DATA", "true")
    monkeypatch.setenv("TRACKER_MQTT_HOST", "broker")

    config = TrackerConfig.from_env(port=9000, seed_demo_data=False, mqtt={"enabled": True})

    assert config.port == 9000
    assert config.seed_demo_data is False
    assert config.mqtt.enabled is True
    assert config.mqtt.host == "broker"


def test_non_numeric_environment_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_HISTORY_LIMIT", "lots")

    with pytest.raises(TrackerConfigError):
        TrackerConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [{"history_retention_days": 0}, {"history_limit": 0}, {"history_limit": 1001}, {"observer_queue_size": 0}],
)
def test_invalid_values(kwargs: dict) -> None:
    with pytest.raises(TrackerConfigError):
        TrackerConfig(**kwargs)


def test_make_backend_by_scheme() -> None:
    assert isinstance(make_backend("memory://"), MemoryBackend)
    assert isinstance(make_backend("redis://localhost:6379/0"), RedisBackend)

    with pytest.raises(TrackerConfigError):
        make_backend("postgres://localhost/db")
