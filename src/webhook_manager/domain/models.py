"""Pydantic models representing key domain entities."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from webhook_manager.domain.enums import ExecutionMode, FailurePoint

# Environment id recorded on locally simulated webhooks when no host environment is known
LOCAL_ENVIRONMENT_ID = "default"


class WebhookTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    codename: str
    description: str = ""
    is_enabled: bool = True


class Webhook(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    url: str
    triggers: list[WebhookTrigger] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    environment_id: str
    created_at: datetime
    updated_at: datetime
    last_triggered: datetime | None = None
    delivery_attempts: int = 0
    successful_deliveries: int = 0
    failed_deliveries: int = 0


class WebhookFormData(BaseModel):
    """User-editable webhook fields; validated by ``validate_webhook_form``."""

    name: str = ""
    url: str = ""
    triggers: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True

    @classmethod
    def from_webhook(cls, webhook: Webhook) -> "WebhookFormData":
        return cls(
            name=webhook.name,
            url=webhook.url,
            triggers=[t.codename for t in webhook.triggers],
            headers=dict(webhook.headers),
            is_active=webhook.is_active,
        )


class NetworkInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    connection_established: bool | None = None
    request_sent: bool | None = None
    response_received: bool | None = None


class FailureDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: str
    error_code: str | None = None
    error_message: str
    suggestion: str
    http_headers: dict[str, str] | None = None
    request_payload: dict[str, Any] | None = None
    response_headers: dict[str, str] | None = None
    network_info: NetworkInfo | None = None


class Troubleshooting(BaseModel):
    model_config = ConfigDict(frozen=True)

    common_causes: list[str]
    immediate_actions: list[str]
    long_term_solutions: list[str]
    related_docs: list[str] = Field(default_factory=list)


class ProbeResult(BaseModel):
    """Outcome of one probe, before it is attached to the registry history."""

    model_config = ConfigDict(frozen=True)

    success: bool
    status_code: int = 0
    response_time_ms: int = 0
    response: str = ""
    error: str | None = None
    failure_point: FailurePoint | None = None
    failure_details: FailureDetails | None = None
    troubleshooting: Troubleshooting | None = None


class WebhookTestResult(ProbeResult):
    id: str
    webhook_id: str
    timestamp: datetime


class WebhookStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    active: int = 0
    inactive: int = 0
    total_deliveries: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0


class ModeInfo(BaseModel):
    mode: ExecutionMode
    description: str


class ConnectionConfig(BaseModel):
    """Credential and environment the registry talks to the Management API with."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    environment_id: str | None = None

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def masked(self) -> dict[str, Any]:
        key = self.api_key or ""
        return {
            "api_key": f"...{key[-4:]}" if self.has_credential else None,
            "has_api_key": self.has_credential,
            "environment_id": self.environment_id,
        }


class ConnectionCheck(BaseModel):
    success: bool
    message: str


class HostContext(BaseModel):
    """Identity and configuration supplied by the host platform at startup."""

    environment_id: str | None = None
    user_id: str | None = None
    user_email: str | None = None
    user_roles: list[dict[str, Any]] = Field(default_factory=list)
    app_config: dict[str, Any] | None = None
    error: str | None = None
