"""Typed application keys."""

from __future__ import annotations

import weakref

from aiohttp import web

from wastetrack.tracker import TrackingCore

CORE_KEY = web.AppKey("wastetrack_core", TrackingCore)
WEBSOCKETS_KEY = web.AppKey("wastetrack_websockets", weakref.WeakSet)
