"""aiohttp application exposing the tracking core over HTTP and WebSocket."""

from __future__ import annotations

import weakref
from collections.abc import AsyncIterator

from aiohttp import WSCloseCode, web

from wastetrack.api._envelope import error_middleware
from wastetrack.api._keys import CORE_KEY, WEBSOCKETS_KEY
from wastetrack.api.http import routes
from wastetrack.api.ws import websocket_handler
from wastetrack.tracker import TrackingCore


def create_app(core: TrackingCore) -> web.Application:
    """Build the application; the core is started and closed with it."""
    app = web.Application(middlewares=[error_middleware])
    app[CORE_KEY] = core
    app[WEBSOCKETS_KEY] = weakref.WeakSet()
    app.add_routes(routes)
    app.router.add_get("/ws", websocket_handler)

    async def _core_lifecycle(app: web.Application) -> AsyncIterator[None]:
        await core.start()
        yield
        await core.close()

    async def _close_websockets(app: web.Application) -> None:
        for ws in set(app[WEBSOCKETS_KEY]):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")

    app.cleanup_ctx.append(_core_lifecycle)
    app.on_shutdown.append(_close_websockets)
    return app


__all__ = ["create_app"]
