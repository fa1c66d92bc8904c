"""Connection settings and configuration backup endpoints."""
from __future__ import annotations

from aiohttp import web

from webhook_manager.api.utils import dump, read_json
from webhook_manager.domain.models import ConnectionConfig
from webhook_manager.services.dependencies import get_registry

routes = web.RouteTableDef()


def _optional_str(value) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise web.HTTPBadRequest(text="api_key and environment_id must be strings")
    return value.strip() or None


@routes.get("/api/v1/settings/connection")
async def get_connection(request: web.Request):
    registry = get_registry(request)
    return web.json_response({**registry.connection.masked(), "mode": registry.mode.value})


@routes.put("/api/v1/settings/connection")
async def update_connection(request: web.Request):
    registry = get_registry(request)
    body = await read_json(request)
    current = registry.connection
    connection = ConnectionConfig(
        api_key=_optional_str(body["api_key"]) if "api_key" in body else current.api_key,
        environment_id=(
            _optional_str(body["environment_id"])
            if "environment_id" in body
            else current.environment_id
        ),
    )
    registry.configure(connection)
    return web.json_response({**connection.masked(), "mode": registry.mode.value})


@routes.post("/api/v1/settings/connection/test")
async def test_connection(request: web.Request):
    result = await get_registry(request).check_connection()
    return web.json_response(dump(result))


@routes.get("/api/v1/settings/export")
async def export_config(request: web.Request):
    return web.json_response(get_registry(request).export_config())


@routes.post("/api/v1/settings/import")
async def import_config(request: web.Request):
    registry = get_registry(request)
    body = await read_json(request)
    if not isinstance(body.get("webhooks", []), list):
        raise web.HTTPBadRequest(text="webhooks must be a list")
    report = await registry.import_config(body)
    return web.json_response(
        {
            "created": [dump(w) for w in report.created],
            "errors": report.errors,
        }
    )
