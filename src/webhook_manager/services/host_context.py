"""Host platform context loading."""
from __future__ import annotations

from typing import Any

import httpx
import structlog

from webhook_manager.domain.models import HostContext
from webhook_manager.settings import Settings

logger = structlog.get_logger(__name__)


def host_context_from_payload(payload: dict[str, Any]) -> HostContext:
    """Parse a custom-app context response (``{"context": {...}, "config": {...}}``)."""
    if payload.get("isError"):
        return HostContext(error=f"Error {payload.get('code')}: {payload.get('description')}")
    context = payload.get("context") or {}
    return HostContext(
        environment_id=context.get("environmentId") or None,
        user_id=context.get("userId") or None,
        user_email=context.get("userEmail") or None,
        user_roles=list(context.get("userRoles") or []),
        app_config=payload.get("config"),
    )


async def load_host_context(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HostContext:
    """Fetch the host context; failures produce a context without an environment id."""
    if settings.host_context_url is None:
        if settings.host_environment_id is None:
            return HostContext(error="Host platform context is not available")
        return HostContext(
            environment_id=settings.host_environment_id,
            user_id=settings.host_user_id,
            user_email=settings.host_user_email,
        )

    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            resp = await client.get(str(settings.host_context_url))
            resp.raise_for_status()
            payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("failed to load host context", error=str(exc))
        return HostContext(error=f"Failed to initialize host context: {exc}")

    if not isinstance(payload, dict):
        return HostContext(error="Host context response must be a JSON object")
    return host_context_from_payload(payload)
