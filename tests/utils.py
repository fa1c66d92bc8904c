from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx

from webhook_manager.domain.models import WebhookFormData

API_BASE = "https://manage.test"
ENVIRONMENT_ID = "env-123"
API_KEY = "secret-key-9876"


def make_form(**overrides: Any) -> WebhookFormData:
    """Valid webhook form data with optional overrides."""
    data: dict[str, Any] = {
        "name": "T1",
        "url": "https://example.invalid/hook",
        "triggers": ["asset_created"],
        "headers": {},
        "is_active": True,
    }
    data.update(overrides)
    return WebhookFormData(**data)


class FakeManagementApi:
    """In-memory stand-in for the Management API webhooks collection."""

    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: tuple[int, dict[str, Any]] | None = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def seed(self, **fields: Any) -> dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        item = {
            "id": str(uuid4()),
            "name": "Seeded",
            "url": "https://receiver.test/hook",
            "triggers": [{"codename": "asset_created", "enabled": True}],
            "headers": {},
            "isActive": True,
            "created": now,
            "modified": now,
        }
        item.update(fields)
        self.items[item["id"]] = item
        return item

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            status, body = self.fail_with
            return httpx.Response(status, json=body)

        prefix = f"/v2/projects/{ENVIRONMENT_ID}/webhooks"
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Unknown environment"})
        webhook_id = path[len(prefix):].strip("/") or None

        if request.method == "GET" and webhook_id is None:
            return httpx.Response(200, json={"webhooks": list(self.items.values())})
        if request.method == "POST" and webhook_id is None:
            body = json.loads(request.content)
            now = datetime.now(timezone.utc).isoformat()
            item = {"id": str(uuid4()), "created": now, "modified": now, **body}
            self.items[item["id"]] = item
            return httpx.Response(201, json=item)
        if webhook_id not in self.items:
            return httpx.Response(404, json={"message": "Webhook not found"})
        if request.method == "PUT":
            body = json.loads(request.content)
            item = {**self.items[webhook_id], **body}
            item["modified"] = datetime.now(timezone.utc).isoformat()
            self.items[webhook_id] = item
            return httpx.Response(200, json=item)
        if request.method == "DELETE":
            del self.items[webhook_id]
            return httpx.Response(204)
        return httpx.Response(405)
