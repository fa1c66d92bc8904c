"""In-memory simulation of the Management API, used when no credential is configured."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Sequence
from uuid import uuid4

from webhook_manager.domain.enums import ExecutionMode
from webhook_manager.domain.models import LOCAL_ENVIRONMENT_ID, Webhook, WebhookFormData
from webhook_manager.domain.triggers import build_triggers


class LocalWebhookBackend:
    mode = ExecutionMode.FALLBACK

    def __init__(self, *, environment_id: str | None = None, latency_seconds: float = 0.5):
        self._environment_id = environment_id or LOCAL_ENVIRONMENT_ID
        self._latency_seconds = latency_seconds

    async def _simulate_latency(self) -> None:
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

    async def list(self, current: Sequence[Webhook]) -> list[Webhook]:
        return list(current)

    async def create(self, data: WebhookFormData) -> Webhook:
        await self._simulate_latency()
        now = datetime.now(timezone.utc)
        return Webhook(
            id=str(uuid4()),
            name=data.name.strip(),
            url=data.url.strip(),
            triggers=build_triggers(data.triggers),
            headers=dict(data.headers),
            is_active=data.is_active,
            environment_id=self._environment_id,
            created_at=now,
            updated_at=now,
        )

    async def update(self, existing: Webhook, data: WebhookFormData) -> Webhook:
        await self._simulate_latency()
        return existing.model_copy(
            update={
                "name": data.name.strip(),
                "url": data.url.strip(),
                "triggers": build_triggers(data.triggers),
                "headers": dict(data.headers),
                "is_active": data.is_active,
                "updated_at": datetime.now(timezone.utc),
            }
        )

    async def delete(self, webhook: Webhook) -> None:
        await self._simulate_latency()
