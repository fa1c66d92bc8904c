"""Shared dependency providers for aiohttp handlers."""
from __future__ import annotations

from aiohttp import web

from webhook_manager.services.registry import WebhookRegistry
from webhook_manager.settings import Settings

REGISTRY_KEY = "webhook_registry"
SETTINGS_KEY = "webhook_manager_settings"


def get_registry(request: web.Request) -> WebhookRegistry:
    return request.app[REGISTRY_KEY]


def get_app_settings(request: web.Request) -> Settings:
    return request.app[SETTINGS_KEY]
