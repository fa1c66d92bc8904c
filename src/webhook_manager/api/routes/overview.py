"""Read-only endpoints backing the dashboard: stats, mode, triggers, history, context."""
from __future__ import annotations

from aiohttp import web

from webhook_manager.api.utils import dump, limit_param
from webhook_manager.domain.triggers import available_triggers
from webhook_manager.services.dependencies import get_registry

routes = web.RouteTableDef()


@routes.get("/api/v1/stats")
async def get_stats(request: web.Request):
    return web.json_response(dump(get_registry(request).stats()))


@routes.get("/api/v1/mode")
async def get_mode(request: web.Request):
    return web.json_response(dump(get_registry(request).mode_info()))


@routes.get("/api/v1/triggers")
async def list_triggers(request: web.Request):
    return web.json_response({"triggers": [dump(t) for t in available_triggers()]})


@routes.get("/api/v1/test-results")
async def list_test_results(request: web.Request):
    registry = get_registry(request)
    items = registry.test_results(limit=limit_param(request, default=None))
    return web.json_response({"test_results": [dump(r) for r in items], "total": len(items)})


@routes.get("/api/v1/context")
async def get_context(request: web.Request):
    context = get_registry(request).host_context
    if context is None:
        return web.json_response({"loaded": False})
    return web.json_response({"loaded": True, **dump(context)})
