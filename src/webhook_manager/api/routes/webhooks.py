"""Webhook configuration endpoints."""
from __future__ import annotations

from typing import Any

import structlog
from aiohttp import web
from pydantic import ValidationError as PydanticValidationError

from webhook_manager.api.utils import dump, http_error_for, json_error, limit_param, read_json
from webhook_manager.core.exceptions import BackendError, WebhookManagerError
from webhook_manager.domain.enums import StatusFilter
from webhook_manager.domain.models import WebhookFormData
from webhook_manager.services.dependencies import get_app_settings, get_registry
from webhook_manager.services.stats import webhook_health

logger = structlog.get_logger(__name__)

routes = web.RouteTableDef()


def _parse_form(body: dict[str, Any]) -> WebhookFormData:
    try:
        return WebhookFormData.model_validate(body)
    except PydanticValidationError as exc:
        raise web.HTTPBadRequest(text=exc.json(), content_type="application/json") from exc


@routes.get("/api/v1/webhooks")
async def list_webhooks(request: web.Request):
    registry = get_registry(request)
    query = request.rel_url.query
    try:
        status = StatusFilter(query.get("status", StatusFilter.ALL.value))
    except ValueError as exc:
        raise web.HTTPBadRequest(text="status must be one of: all, active, inactive") from exc

    error: str | None = None
    try:
        await registry.list_webhooks()
    except BackendError as exc:
        # keep serving the last known set
        error = str(exc)

    items = registry.search(query.get("search"), status)
    return web.json_response(
        {
            "webhooks": [dump(item) for item in items],
            "total": len(items),
            "mode": registry.mode.value,
            "error": error,
        }
    )


@routes.post("/api/v1/webhooks")
async def create_webhook(request: web.Request):
    registry = get_registry(request)
    settings = get_app_settings(request)
    data = _parse_form(await read_json(request))
    try:
        webhook = await registry.create_webhook(data)
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc

    payload = dump(webhook)
    if settings.auto_test_on_create and webhook.is_active:
        try:
            result = await registry.test_webhook(webhook.id)
            payload = dump(registry.get_webhook(webhook.id))
            payload["test_result"] = dump(result)
        except Exception as exc:
            logger.exception("auto test after create failed", webhook_id=webhook.id)
            payload["test_error"] = str(exc)
    return web.json_response(payload, status=201)


@routes.get("/api/v1/webhooks/{webhook_id}")
async def get_webhook(request: web.Request):
    registry = get_registry(request)
    settings = get_app_settings(request)
    webhook_id = request.match_info["webhook_id"]
    try:
        webhook = registry.get_webhook(webhook_id)
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc
    payload = dump(webhook)
    payload["health"] = webhook_health(webhook).value
    payload["recent_test_results"] = [
        dump(r) for r in registry.test_results(webhook_id, limit=settings.recent_results_limit)
    ]
    return web.json_response(payload)


@routes.put("/api/v1/webhooks/{webhook_id}")
async def update_webhook(request: web.Request):
    registry = get_registry(request)
    webhook_id = request.match_info["webhook_id"]
    data = _parse_form(await read_json(request))
    try:
        webhook = await registry.update_webhook(webhook_id, data)
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc
    return web.json_response(dump(webhook))


@routes.delete("/api/v1/webhooks/{webhook_id}")
async def delete_webhook(request: web.Request):
    registry = get_registry(request)
    try:
        await registry.delete_webhook(request.match_info["webhook_id"])
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc
    return web.Response(status=204)


@routes.post("/api/v1/webhooks/{webhook_id}/test")
async def test_webhook(request: web.Request):
    registry = get_registry(request)
    webhook_id = request.match_info["webhook_id"]
    try:
        result = await registry.test_webhook(webhook_id)
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc
    except Exception as exc:
        # normally already recorded as an "unknown" result in the history
        recorded = registry.test_results(webhook_id, limit=1)
        raise json_error(
            web.HTTPInternalServerError,
            f"Webhook test error: {exc}",
            test_result=dump(recorded[0]) if recorded else None,
        ) from exc
    return web.json_response(dump(result))


@routes.get("/api/v1/webhooks/{webhook_id}/test-results")
async def list_webhook_test_results(request: web.Request):
    registry = get_registry(request)
    settings = get_app_settings(request)
    webhook_id = request.match_info["webhook_id"]
    try:
        registry.get_webhook(webhook_id)
    except WebhookManagerError as exc:
        raise http_error_for(exc) from exc
    limit = limit_param(request, default=settings.recent_results_limit)
    items = registry.test_results(webhook_id, limit=limit)
    return web.json_response({"test_results": [dump(r) for r in items], "total": len(items)})
