"""Repository package exports."""

from webhook_manager.repositories.base import WebhookBackend
from webhook_manager.repositories.local import LocalWebhookBackend
from webhook_manager.repositories.remote import RemoteWebhookBackend

__all__ = [
    "WebhookBackend",
    "LocalWebhookBackend",
    "RemoteWebhookBackend",
]
