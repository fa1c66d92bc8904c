"""Backend that executes webhook operations against the Management REST API."""
from __future__ import annotations

from typing import Sequence

import httpx

from webhook_manager.clients.management_api import ManagementApiClient
from webhook_manager.domain.enums import ExecutionMode
from webhook_manager.domain.models import Webhook, WebhookFormData


class RemoteWebhookBackend:
    mode = ExecutionMode.API

    def __init__(
        self,
        *,
        base_url: str,
        environment_id: str,
        api_key: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._environment_id = environment_id
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> ManagementApiClient:
        return ManagementApiClient(
            base_url=self._base_url,
            environment_id=self._environment_id,
            api_key=self._api_key,
            timeout_s=self._timeout_s,
            transport=self._transport,
        )

    async def list(self, current: Sequence[Webhook]) -> list[Webhook]:
        async with self._client() as client:
            return await client.list_webhooks()

    async def create(self, data: WebhookFormData) -> Webhook:
        async with self._client() as client:
            return await client.create_webhook(data)

    async def update(self, existing: Webhook, data: WebhookFormData) -> Webhook:
        async with self._client() as client:
            return await client.update_webhook(existing.id, data)

    async def delete(self, webhook: Webhook) -> None:
        async with self._client() as client:
            await client.delete_webhook(webhook.id)
