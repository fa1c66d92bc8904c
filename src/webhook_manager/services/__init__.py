"""Domain services exports."""

from webhook_manager.services.probe import ProbeEngine
from webhook_manager.services.registry import WebhookRegistry

__all__ = [
    "ProbeEngine",
    "WebhookRegistry",
]
