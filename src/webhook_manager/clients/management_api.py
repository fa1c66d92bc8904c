"""Management REST API client for webhook resources."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from webhook_manager.core.exceptions import BackendError, NotFoundError
from webhook_manager.domain.models import Webhook, WebhookFormData, WebhookTrigger
from webhook_manager.domain.triggers import build_trigger, build_triggers

logger = structlog.get_logger(__name__)


def trigger_to_wire(trigger: WebhookTrigger) -> dict[str, Any]:
    return {"codename": trigger.codename, "enabled": trigger.is_enabled}


def trigger_from_wire(item: dict[str, Any]) -> WebhookTrigger:
    return build_trigger(str(item["codename"]), enabled=bool(item.get("enabled", True)))


def form_to_wire(data: WebhookFormData) -> dict[str, Any]:
    return {
        "name": data.name.strip(),
        "url": data.url.strip(),
        "triggers": [trigger_to_wire(t) for t in build_triggers(data.triggers)],
        "headers": dict(data.headers),
        "isActive": data.is_active,
    }


def _parse_headers(value: Any) -> dict[str, str]:
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, list):
        return {str(h["key"]): str(h.get("value", "")) for h in value if "key" in h}
    return {}


# .NET-style timestamps carry up to 7 fractional digits
_FRACTION_RE = re.compile(r"\.(\d+)")


def _pad_fraction(match: re.Match[str]) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def _parse_datetime(value: Any) -> datetime | None:
    """Parse a wire timestamp into an aware datetime; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = _FRACTION_RE.sub(_pad_fraction, str(value).strip().replace("Z", "+00:00"), count=1)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def webhook_from_wire(item: dict[str, Any], environment_id: str) -> Webhook:
    now = datetime.now(timezone.utc)
    created = _parse_datetime(item.get("created")) or now
    return Webhook(
        id=str(item["id"]),
        name=item.get("name", ""),
        url=item.get("url", ""),
        triggers=[trigger_from_wire(t) for t in item.get("triggers") or []],
        headers=_parse_headers(item.get("headers")),
        is_active=bool(item.get("isActive", True)),
        environment_id=environment_id,
        created_at=created,
        updated_at=_parse_datetime(item.get("modified")) or created,
        last_triggered=_parse_datetime(item.get("lastTriggered")),
        delivery_attempts=int(item.get("deliveryAttempts") or 0),
        successful_deliveries=int(item.get("successfulDeliveries") or 0),
        failed_deliveries=int(item.get("failedDeliveries") or 0),
    )


def error_message_from_response(response: httpx.Response) -> str:
    """Build a single human-readable message from an error response.

    ``validation_errors`` entries are flattened after the top-level message.
    """
    fallback = f"Management API request failed with HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback

    message = str(body.get("message") or fallback)
    details: list[str] = []
    for item in body.get("validation_errors") or []:
        if isinstance(item, dict):
            text = str(item.get("message", "")).strip()
            path = item.get("path")
            if text:
                details.append(f"{path}: {text}" if path else text)
        elif item:
            details.append(str(item))
    if details:
        return f"{message}: {'; '.join(details)}"
    return message


class ManagementApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        environment_id: str,
        api_key: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._environment_id = environment_id
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ManagementApiClient":
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/v2/projects/{self._environment_id}",
            timeout=self._timeout_s,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        not_found_message: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client is not started; use 'async with ManagementApiClient(...)'.")
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("management api request failed", method=method, path=path, error=str(exc))
            raise BackendError(f"Management API request failed: {exc}") from exc
        if resp.status_code == 404 and not_found_message:
            raise NotFoundError(not_found_message)
        if resp.status_code >= 400:
            message = error_message_from_response(resp)
            logger.warning(
                "management api returned error",
                method=method,
                path=path,
                status_code=resp.status_code,
                error=message,
            )
            raise BackendError(message, status_code=resp.status_code)
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError("Management API returned an invalid JSON body") from exc

    def _webhooks(self, items: Any) -> list[Webhook]:
        try:
            return [webhook_from_wire(item, self._environment_id) for item in items or []]
        except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as exc:
            logger.warning("management api returned malformed webhook", error=str(exc))
            raise BackendError("Management API returned an unexpected webhook payload") from exc

    def _webhook(self, item: Any) -> Webhook:
        return self._webhooks([item])[0]

    async def list_webhooks(self) -> list[Webhook]:
        resp = await self._request("GET", "/webhooks")
        body = self._json(resp)
        items = body.get("webhooks", body.get("items", [])) if isinstance(body, dict) else body
        return self._webhooks(items)

    async def create_webhook(self, data: WebhookFormData) -> Webhook:
        resp = await self._request("POST", "/webhooks", json=form_to_wire(data))
        return self._webhook(self._json(resp))

    async def update_webhook(self, webhook_id: str, data: WebhookFormData) -> Webhook:
        resp = await self._request(
            "PUT",
            f"/webhooks/{webhook_id}",
            json=form_to_wire(data),
            not_found_message="Webhook not found",
        )
        return self._webhook(self._json(resp))

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request(
            "DELETE", f"/webhooks/{webhook_id}", not_found_message="Webhook not found"
        )
