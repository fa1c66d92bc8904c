"""Backend strategy interface shared by the local and remote webhook stores."""
from __future__ import annotations

from typing import Protocol, Sequence

from webhook_manager.domain.enums import ExecutionMode
from webhook_manager.domain.models import Webhook, WebhookFormData


class WebhookBackend(Protocol):
    """Where registry mutations are executed.

    Backends never hold the authoritative collection; they receive the current
    snapshot where they need it and return new records by value.
    """

    mode: ExecutionMode

    async def list(self, current: Sequence[Webhook]) -> list[Webhook]:
        ...

    async def create(self, data: WebhookFormData) -> Webhook:
        ...

    async def update(self, existing: Webhook, data: WebhookFormData) -> Webhook:
        ...

    async def delete(self, webhook: Webhook) -> None:
        ...
