"""
HTTP transport for the record service.

Routes:
    PUT  /records/{key}   body {"document": "<json text>"}
    POST /records         body {"key": "...", "document": "<json text>"}
    GET  /records/{key}

``{key}`` matches the rest of the path, so keys containing ``/`` stored via
``POST /records`` stay reachable.
``InvalidInput`` maps to 400 and ``InternalError`` to an opaque 500; the
underlying cause is only written to the server log.
"""
import logging
from typing import Any

import orjson
from aiohttp import web

from .exceptions import InternalError, InvalidInput
from .vault.models import FetchRequest, StoreRequest
from .vault.service import RecordService

logger = logging.getLogger("record_vault.web")

SERVICE_KEY = web.AppKey("record_service", RecordService)


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def _json(data: dict, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=_dumps)


async def _read_body(request: web.Request) -> dict:
    try:
        body = await request.json(loads=orjson.loads)
    except ValueError as err:
        raise InvalidInput("Request body must be valid JSON") from err
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def _string_field(body: dict, name: str) -> str:
    value = body.get(name, "")
    if not isinstance(value, str):
        raise InvalidInput(f"Field '{name}' must be a string")
    return value


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except InvalidInput as err:
        return _json({"error": "invalid_input", "message": str(err)}, status=400)
    except InternalError as err:
        logger.error(
            "Internal error on %s %s: %r",
            request.method, request.path, err.__cause__,
        )
        return _json({"error": "internal", "message": str(err)}, status=500)


async def put_record(request: web.Request) -> web.Response:
    body = await _read_body(request)
    store_request = StoreRequest(
        key=request.match_info["key"],
        document=_string_field(body, "document"),
    )
    response = await request.app[SERVICE_KEY].store(store_request)
    return _json(response.model_dump())


async def post_record(request: web.Request) -> web.Response:
    body = await _read_body(request)
    store_request = StoreRequest(
        key=_string_field(body, "key"),
        document=_string_field(body, "document"),
    )
    response = await request.app[SERVICE_KEY].store(store_request)
    return _json(response.model_dump())


async def get_record(request: web.Request) -> web.Response:
    fetch_request = FetchRequest(key=request.match_info["key"])
    response = await request.app[SERVICE_KEY].fetch(fetch_request)
    return _json(response.to_payload(), status=200 if response.found else 404)


def create_app(service: RecordService) -> web.Application:
    """Build the aiohttp application serving ``service``."""
    app = web.Application(middlewares=[error_middleware])
    app[SERVICE_KEY] = service
    app.router.add_put("/records/{key:.+}", put_record)
    app.router.add_post("/records", post_record)
    app.router.add_get("/records/{key:.+}", get_record)
    return app
