"""HTTP request surface."""

from __future__ import annotations

import logging

from aiohttp import web

from wastetrack.api._envelope import CALLER_HEADER, json_ok, read_json_object
from wastetrack.api._keys import CORE_KEY
from wastetrack.exceptions import NotFoundError
from wastetrack.models.requests import HistoryQuery, ListVehiclesQuery, NearbyQuery, validate_request
from wastetrack.models.vehicle import VehicleStatus
from wastetrack.query.snapshot import SnapshotResult

_logger = logging.getLogger(__name__)

routes = web.RouteTableDef()


def _snapshot_body(result: SnapshotResult) -> dict[str, object]:
    body: dict[str, object] = {
        "count": result.count,
        "data": [summary.to_wire() for summary in result.data],
        "degraded": result.degraded,
    }
    if result.reason is not None:
        body["reason"] = result.reason
    return body


@routes.post("/api/tracking/update-location")
async def update_location(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    payload = await read_json_object(request)
    _logger.debug("update-location caller=%s", request.headers.get(CALLER_HEADER))
    result = await core.reconciler.handle_location_payload(payload)
    return json_ok(
        message="Location updated successfully" if result.persisted else "Location broadcast but not persisted",
        persisted=result.persisted,
        location=result.event.to_wire()["data"],
    )


@routes.post("/api/tracking/update-status")
async def update_status(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    payload = await read_json_object(request)
    _logger.debug("update-status caller=%s", request.headers.get(CALLER_HEADER))
    result = await core.reconciler.handle_status_payload(payload)
    return json_ok(
        message="Status updated successfully" if result.persisted else "Status broadcast but not persisted",
        persisted=result.persisted,
        vehicle=result.vehicle.to_wire() if result.vehicle is not None else None,
        event=result.event.to_wire()["data"],
    )


@routes.get("/api/tracking/vehicles")
async def list_vehicles(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    query = validate_request(ListVehiclesQuery, dict(request.query))
    excluded = (VehicleStatus.MAINTENANCE,) if query.exclude_maintenance else ()
    result = await core.snapshots.list_active(excluded)
    return json_ok(**_snapshot_body(result))


@routes.get("/api/tracking/vehicles/{vehicleId}")
async def vehicle_detail(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    vehicle_id = request.match_info["vehicleId"]
    vehicle = await core.snapshots.get_vehicle(vehicle_id)
    if vehicle is None:
        raise NotFoundError(f"Vehicle {vehicle_id.upper()} not found", vehicle_id=vehicle_id)
    data = vehicle.to_wire()
    data["routeCompletionPercentage"] = vehicle.route_completion_percentage
    return json_ok(data=data)


@routes.get("/api/tracking/history/{vehicleId}")
async def vehicle_history(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    query = validate_request(HistoryQuery, {**request.query, "vehicleId": request.match_info["vehicleId"]})
    samples = await core.snapshots.history(
        query.vehicle_id,
        start=query.start_date,
        end=query.end_date,
        limit=query.limit if "limit" in request.query else None,
    )
    return json_ok(count=len(samples), data=[sample.to_wire() for sample in samples])


@routes.get("/api/tracking/nearby")
async def nearby_vehicles(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    query = validate_request(NearbyQuery, dict(request.query))
    result = await core.snapshots.find_nearby(query.latitude, query.longitude, query.radius_km)
    return json_ok(**_snapshot_body(result))


@routes.get("/api/health")
async def health(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    available = await core.store_available()
    return json_ok(store="up" if available else "down", observers=core.fanout.observer_count)
