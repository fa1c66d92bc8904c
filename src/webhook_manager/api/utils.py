"""Helper utilities for API handlers."""
from __future__ import annotations

import json
from typing import Any

from aiohttp import web
from pydantic import BaseModel

from webhook_manager.core.exceptions import (
    BackendError,
    NotFoundError,
    PreconditionError,
    ValidationError,
    WebhookManagerError,
)


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except Exception as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data


def json_error(
    exc_class: type[web.HTTPException],
    message: str,
    **extra: Any,
) -> web.HTTPException:
    body = json.dumps({"error": message, **extra})
    return exc_class(text=body, content_type="application/json")


def http_error_for(exc: WebhookManagerError) -> web.HTTPException:
    """Translate a domain error into the matching HTTP error response."""
    if isinstance(exc, ValidationError):
        return json_error(web.HTTPBadRequest, str(exc), errors=exc.errors)
    if isinstance(exc, NotFoundError):
        return json_error(web.HTTPNotFound, str(exc))
    if isinstance(exc, PreconditionError):
        return json_error(web.HTTPConflict, str(exc))
    if isinstance(exc, BackendError):
        return json_error(web.HTTPBadGateway, str(exc), upstream_status=exc.status_code)
    return json_error(web.HTTPInternalServerError, str(exc))


def dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def limit_param(request: web.Request, *, default: int | None, max_limit: int = 100) -> int | None:
    raw = request.rel_url.query.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError as exc:
        raise web.HTTPBadRequest(text="limit must be an integer") from exc
    if limit <= 0:
        return default
    return min(limit, max_limit)
