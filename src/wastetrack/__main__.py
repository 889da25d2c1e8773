"""Run the tracking core as an HTTP/WebSocket service.

Usage::

    python -m wastetrack --port 3001 --seed-demo-data
    TRACKER_STORE_URL=redis://localhost:6379/0 python -m wastetrack
"""

from __future__ import annotations

import argparse
import logging
import sys

from aiohttp import web

from wastetrack.api import create_app
from wastetrack.config import TrackerConfig
from wastetrack.exceptions import TrackerConfigError
from wastetrack.tracker import TrackingCore


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="wastetrack", description="Waste-collection vehicle tracking service")
    parser.add_argument("--host", help="Bind address (default: TRACKER_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port (default: TRACKER_PORT or 3001)")
    parser.add_argument("--store-url", help="memory:// or redis://host:port/db")
    parser.add_argument("--seed-demo-data", action="store_true", help="Register the demo fleet on startup")
    parser.add_argument("--mqtt", action="store_true", help="Enable the MQTT driver ingest channel")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.store_url:
        overrides["store_url"] = args.store_url
    if args.seed_demo_data:
        overrides["seed_demo_data"] = True
    if args.mqtt:
        overrides["mqtt"] = {"enabled": True}
    try:
        config = TrackerConfig.from_env(**overrides)
        core = TrackingCore(config)
    except TrackerConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    web.run_app(create_app(core), host=config.host, port=config.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
