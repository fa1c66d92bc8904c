"""Webhook form validation shared by create, update and import."""
from __future__ import annotations

from urllib.parse import urlsplit

from webhook_manager.core.exceptions import ValidationError
from webhook_manager.domain.models import WebhookFormData


def is_valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def collect_form_errors(data: WebhookFormData) -> list[str]:
    errors: list[str] = []

    if not data.name.strip():
        errors.append("Webhook name is required")

    if not data.url.strip():
        errors.append("Webhook URL is required")
    elif not is_valid_url(data.url):
        errors.append("Webhook URL must be a valid URL")

    if not any(t and t.strip() for t in data.triggers):
        errors.append("At least one trigger must be selected")

    return errors


def validate_webhook_form(data: WebhookFormData) -> None:
    """Raise ValidationError listing every problem with ``data``."""
    errors = collect_form_errors(data)
    if errors:
        raise ValidationError(errors)
