from __future__ import annotations

from wastetrack._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "vehicleId": "KA01AB1234",
        "driverRef": "driver-001",
        "token": {"userId": "123"},
        "password": "pw",
        "nested": {"Authorization": "Bearer abc", "latitude": 12.9},
    }

    redacted = redact_for_log(payload)
    assert redacted["vehicleId"] == "KA01AB1234"
    assert redacted["driverRef"] == "<redacted>"
    assert redacted["token"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"
    assert redacted["nested"]["latitude"] == 12.9


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"message": long_value}, max_string=10)
    assert redacted["message"].startswith("x" * 10)
    assert "<truncated>" in redacted["message"]


def test_redact_for_log_summarizes_bytes_and_lists() -> None:
    redacted = redact_for_log({"raw": b"\x00\x01", "points": [{"password": "pw"}]})
    assert redacted["raw"] == "<bytes:2b>"
    assert redacted["points"] == [{"password": "<redacted>"}]
