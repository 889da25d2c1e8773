#!/usr/bin/env python3
"""Drive a vehicle around a running wastetrack service.

Posts a stream of location updates (and an optional final status) for one
vehicle, while a second connection watches the WebSocket feed and prints
every event it receives. Useful to eyeball per-vehicle ordering and the
degraded (not persisted) path.

Usage
-----
Start a server with the demo fleet, then::

    python -m wastetrack --seed-demo-data &
    python scripts/simulate_driver.py --vehicle KA01AB1234 --steps 20

Options::

    --base-url URL      Service URL (default: http://localhost:3001)
    --vehicle ID        Vehicle plate (default: KA01AB1234)
    --steps N           Number of location updates (default: 10)
    --interval S        Seconds between updates (default: 0.5)
    --complete          Send status=completed after the last step
    --no-watch          Do not open the WebSocket watcher
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import sys
from pathlib import Path
from typing import Any

import aiohttp

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from wastetrack._demo import demo_vehicles  # noqa: E402


def _start_point(vehicle_id: str) -> tuple[float, float]:
    for vehicle in demo_vehicles():
        if vehicle.vehicle_id == vehicle_id:
            return vehicle.current_location.latitude, vehicle.current_location.longitude
    return 12.9716, 77.5946


async def _watch(session: aiohttp.ClientSession, base_url: str, vehicle_id: str, stop: asyncio.Event) -> None:
    ws_url = base_url.replace("http", "ws", 1).rstrip("/") + "/ws"
    async with session.ws_connect(ws_url) as ws:
        await ws.send_json({"event": "joinVehicleGroup", "data": {"vehicleId": vehicle_id}})
        while not stop.is_set():
            try:
                msg = await ws.receive(timeout=0.5)
            except TimeoutError:
                continue
            if msg.type != aiohttp.WSMsgType.TEXT:
                break
            frame: dict[str, Any] = json.loads(msg.data)
            data = frame.get("data", {})
            print(f"<- {frame.get('event')}: seq={data.get('sequence')} persisted={data.get('persisted')}")


async def _drive(args: argparse.Namespace) -> int:
    lat, lng = _start_point(args.vehicle)
    stop = asyncio.Event()
    async with aiohttp.ClientSession() as session:
        watcher = None
        if args.watch:
            watcher = asyncio.create_task(_watch(session, args.base_url, args.vehicle, stop))
            await asyncio.sleep(0.2)

        for step in range(args.steps):
            angle = step / max(args.steps, 1) * 2 * math.pi
            payload = {
                "vehicleId": args.vehicle,
                "latitude": lat + 0.002 * math.sin(angle),
                "longitude": lng + 0.002 * math.cos(angle),
                "speed": 18.0,
                "heading": math.degrees(angle) % 360,
                "accuracy": 5.0,
            }
            async with session.post(f"{args.base_url}/api/tracking/update-location", json=payload) as resp:
                body = await resp.json()
                print(f"-> location {step + 1}/{args.steps}: HTTP {resp.status} persisted={body.get('persisted')}")
                if resp.status >= 400:
                    print(f"   {body.get('message')}", file=sys.stderr)
                    break
            await asyncio.sleep(args.interval)

        if args.complete:
            payload = {"vehicleId": args.vehicle, "status": "completed"}
            async with session.post(f"{args.base_url}/api/tracking/update-status", json=payload) as resp:
                body = await resp.json()
                print(f"-> status completed: HTTP {resp.status} {body.get('message')}")

        stop.set()
        if watcher is not None:
            await watcher
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n", 1)[0])
    parser.add_argument("--base-url", default="http://localhost:3001")
    parser.add_argument("--vehicle", default="KA01AB1234")
    parser.add_argument("--steps", type=int, default=10)
    parser.add_argument("--interval", type=float, default=0.5)
    parser.add_argument("--complete", action="store_true")
    parser.add_argument("--no-watch", dest="watch", action="store_false")
    return asyncio.run(_drive(parser.parse_args()))


if __name__ == "__main__":
    raise SystemExit(main())
