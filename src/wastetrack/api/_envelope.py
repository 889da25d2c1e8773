"""Response envelope and error mapping for the HTTP surface.

Every response carries ``success``; failures carry a human-readable
``message``. Degraded reads are successes with ``degraded``/``reason``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from wastetrack.exceptions import InvalidInputError, NotFoundError, StoreUnavailableError

_logger = logging.getLogger(__name__)

#: Header set by the authentication boundary in front of the core.
CALLER_HEADER = "X-Caller-Id"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def json_ok(**payload: Any) -> web.Response:
    return web.json_response({"success": True, **payload})


def json_error(status: int, message: str) -> web.Response:
    return web.json_response({"success": False, "message": message}, status=status)


async def read_json_object(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidInputError("request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidInputError("request body must be a JSON object")
    return body


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate the exception taxonomy into status codes."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except InvalidInputError as exc:
        return json_error(400, str(exc))
    except NotFoundError as exc:
        return json_error(404, str(exc))
    except StoreUnavailableError:
        _logger.warning("Store unavailable for %s %s", request.method, request.path)
        return json_error(503, "Storage temporarily unavailable")
    except Exception:
        _logger.exception("Unhandled error for %s %s", request.method, request.path)
        return json_error(500, "Server error")
