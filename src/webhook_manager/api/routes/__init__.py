"""Route modules."""

from . import overview, settings, webhooks

__all__ = [
    "overview",
    "settings",
    "webhooks",
]
