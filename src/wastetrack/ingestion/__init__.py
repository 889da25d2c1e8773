"""Ingestion layer.

This package validates incoming driver reports (HTTP, WebSocket, MQTT),
reconciles them with the durable store, and emits normalized events for
the broadcast fanout.
"""

__all__: list[str] = []
