"""Common exceptions for the registry, backends and probe engine."""
from __future__ import annotations


class WebhookManagerError(Exception):
    """Base error for service layer."""


class ValidationError(WebhookManagerError):
    """Raised when webhook form input is rejected before any side effect."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class PreconditionError(WebhookManagerError):
    """Raised when an operation is requested on a webhook in the wrong state."""


class NotFoundError(PreconditionError):
    """Raised when requested webhook is missing."""


class BackendError(WebhookManagerError):
    """Raised when the Management API rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
