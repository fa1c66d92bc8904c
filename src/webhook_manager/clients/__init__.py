"""Outbound API clients."""

from webhook_manager.clients.management_api import ManagementApiClient

__all__ = ["ManagementApiClient"]
