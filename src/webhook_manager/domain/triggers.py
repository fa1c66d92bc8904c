"""Catalog of webhook triggers offered by the platform."""
from __future__ import annotations

from webhook_manager.domain.models import WebhookTrigger

# codename -> (display name, description)
TRIGGER_CATALOG: dict[str, tuple[str, str]] = {
    "content_item_variant_changed": (
        "Content Item Variant Changed",
        "Triggered when a content item variant is modified",
    ),
    "content_item_variant_deleted": (
        "Content Item Variant Deleted",
        "Triggered when a content item variant is removed",
    ),
    "content_item_variant_created": (
        "Content Item Variant Created",
        "Triggered when a new content item variant is created",
    ),
    "content_item_variant_workflow_step_changed": (
        "Workflow Step Changed",
        "Triggered when a content item moves between workflow steps",
    ),
    "content_item_variant_published": (
        "Content Published",
        "Triggered when content is published",
    ),
    "content_item_variant_unpublished": (
        "Content Unpublished",
        "Triggered when content is unpublished",
    ),
    "asset_created": ("Asset Created", "Triggered when a new asset is uploaded"),
    "asset_updated": ("Asset Updated", "Triggered when an asset is modified"),
    "asset_deleted": ("Asset Deleted", "Triggered when an asset is removed"),
}


def build_trigger(codename: str, *, enabled: bool = True) -> WebhookTrigger:
    name, description = TRIGGER_CATALOG.get(codename, (codename, ""))
    return WebhookTrigger(
        id=codename,
        name=name,
        codename=codename,
        description=description,
        is_enabled=enabled,
    )


def build_triggers(codenames: list[str]) -> list[WebhookTrigger]:
    """Map form codenames to trigger records, dropping blanks and duplicates."""
    cleaned = [c.strip() for c in codenames if c and c.strip()]
    return [build_trigger(c) for c in dict.fromkeys(cleaned)]


def available_triggers() -> list[WebhookTrigger]:
    return [build_trigger(codename) for codename in TRIGGER_CATALOG]
