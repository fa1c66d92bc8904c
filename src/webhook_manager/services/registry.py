"""Webhook registry: single owner of webhooks, test history and derived stats.

Every operation builds a new :class:`RegistryState` and swaps it in with one
assignment once the backend call has finished, so readers only ever observe a
complete pre- or post-operation snapshot.

Backend routing is decided per operation from the current
:class:`ConnectionConfig`: with both an API key and an environment id the
remote Management API is used, otherwise the local in-memory simulation.
A failed remote call is reported to the caller and recorded in ``state.error``;
it never switches later operations to the local backend.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Sequence
from uuid import uuid4

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from webhook_manager.core.exceptions import (
    BackendError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from webhook_manager.domain.enums import ExecutionMode, FailurePoint, StatusFilter
from webhook_manager.domain.models import (
    LOCAL_ENVIRONMENT_ID,
    ConnectionCheck,
    ConnectionConfig,
    HostContext,
    ModeInfo,
    ProbeResult,
    Webhook,
    WebhookFormData,
    WebhookStats,
    WebhookTestResult,
)
from webhook_manager.domain.validation import validate_webhook_form
from webhook_manager.repositories import (
    LocalWebhookBackend,
    RemoteWebhookBackend,
    WebhookBackend,
)
from webhook_manager.services.probe import ProbeEngine, failure_result
from webhook_manager.services.stats import compute_stats
from webhook_manager.settings import Settings

logger = structlog.get_logger(__name__)

EXPORT_FORMAT_VERSION = 1

BackendFactory = Callable[[ConnectionConfig], WebhookBackend]

_MODE_DESCRIPTIONS = {
    ExecutionMode.API: "Connected to the Management API; changes are saved to the platform",
    ExecutionMode.FALLBACK: (
        "Local simulation mode; no Management API key is configured and changes are kept in memory"
    ),
    ExecutionMode.UNKNOWN: "Waiting for the host platform context",
}


@dataclass(frozen=True)
class RegistryState:
    webhooks: tuple[Webhook, ...] = ()
    test_results: tuple[WebhookTestResult, ...] = ()
    stats: WebhookStats = field(default_factory=WebhookStats)
    error: str | None = None


@dataclass
class ImportReport:
    created: list[Webhook] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


def make_backend_factory(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BackendFactory:
    """Build the per-operation backend selector for ``settings``."""

    def factory(connection: ConnectionConfig) -> WebhookBackend:
        if connection.has_credential and connection.environment_id:
            return RemoteWebhookBackend(
                base_url=str(settings.management_api_url),
                environment_id=connection.environment_id,
                api_key=connection.api_key or "",
                timeout_s=settings.management_api_timeout_seconds,
                transport=transport,
            )
        return LocalWebhookBackend(
            environment_id=connection.environment_id,
            latency_seconds=settings.simulated_latency_seconds,
        )

    return factory


class WebhookRegistry:
    def __init__(
        self,
        *,
        probe: ProbeEngine,
        backend_factory: BackendFactory,
        connection: ConnectionConfig | None = None,
        awaiting_context: bool = False,
    ):
        self._probe = probe
        self._backend_factory = backend_factory
        self._connection = connection or ConnectionConfig()
        self._awaiting_context = awaiting_context
        self._host_context: HostContext | None = None
        self._state = RegistryState()
        self._testing: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        probe: ProbeEngine | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "WebhookRegistry":
        return cls(
            probe=probe
            or ProbeEngine(
                timeout_seconds=settings.probe_timeout_seconds,
                user_agent=settings.probe_user_agent,
            ),
            backend_factory=make_backend_factory(settings, transport=transport),
            connection=ConnectionConfig(
                api_key=settings.management_api_key,
                environment_id=settings.environment_id,
            ),
            awaiting_context=True,
        )

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def probe_engine(self) -> ProbeEngine:
        return self._probe

    @property
    def connection(self) -> ConnectionConfig:
        return self._connection

    @property
    def host_context(self) -> HostContext | None:
        return self._host_context

    def _commit(self, **changes: Any) -> RegistryState:
        new_state = dataclasses.replace(self._state, **changes)
        if "webhooks" in changes or "test_results" in changes:
            new_state = dataclasses.replace(
                new_state, stats=compute_stats(new_state.webhooks, new_state.test_results)
            )
        self._state = new_state
        return new_state

    def _find(self, webhook_id: str) -> Webhook | None:
        for webhook in self._state.webhooks:
            if webhook.id == webhook_id:
                return webhook
        return None

    def get_webhook(self, webhook_id: str) -> Webhook:
        webhook = self._find(webhook_id)
        if webhook is None:
            raise NotFoundError("Webhook not found")
        return webhook

    # -- mode ----------------------------------------------------------------

    def configure(self, connection: ConnectionConfig) -> None:
        """Replace credential/environment; takes effect on the next operation."""
        self._connection = connection
        logger.info(
            "registry connection configured",
            has_api_key=connection.has_credential,
            environment_id=connection.environment_id,
            mode=self.mode.value,
        )

    def apply_host_context(self, context: HostContext) -> None:
        self._host_context = context
        self._awaiting_context = False
        if not self._connection.environment_id and context.environment_id:
            self._connection = self._connection.model_copy(
                update={"environment_id": context.environment_id}
            )
        logger.info(
            "host context applied",
            environment_id=context.environment_id,
            error=context.error,
            mode=self.mode.value,
        )

    def _backend(self) -> WebhookBackend:
        return self._backend_factory(self._connection)

    @property
    def mode(self) -> ExecutionMode:
        if self._awaiting_context:
            return ExecutionMode.UNKNOWN
        return self._backend().mode

    def mode_info(self) -> ModeInfo:
        mode = self.mode
        return ModeInfo(mode=mode, description=_MODE_DESCRIPTIONS[mode])

    # -- queries -------------------------------------------------------------

    def stats(self) -> WebhookStats:
        return compute_stats(self._state.webhooks, self._state.test_results)

    def test_results(
        self, webhook_id: str | None = None, *, limit: int | None = None
    ) -> list[WebhookTestResult]:
        results = [
            r for r in self._state.test_results if webhook_id is None or r.webhook_id == webhook_id
        ]
        return results[:limit] if limit is not None else results

    def search(
        self,
        term: str | None = None,
        status: StatusFilter = StatusFilter.ALL,
    ) -> list[Webhook]:
        needle = (term or "").strip().lower()
        items = []
        for webhook in self._state.webhooks:
            if needle and needle not in webhook.name.lower() and needle not in webhook.url.lower():
                continue
            if status == StatusFilter.ACTIVE and not webhook.is_active:
                continue
            if status == StatusFilter.INACTIVE and webhook.is_active:
                continue
            items.append(webhook)
        return items

    # -- commands ------------------------------------------------------------

    def _merge_session_counters(self, fetched: Webhook) -> Webhook:
        known = self._find(fetched.id)
        if known is None:
            return fetched
        last_triggered = max(
            (t for t in (known.last_triggered, fetched.last_triggered) if t is not None),
            default=None,
        )
        return fetched.model_copy(
            update={
                "delivery_attempts": max(known.delivery_attempts, fetched.delivery_attempts),
                "successful_deliveries": max(
                    known.successful_deliveries, fetched.successful_deliveries
                ),
                "failed_deliveries": max(known.failed_deliveries, fetched.failed_deliveries),
                "last_triggered": last_triggered,
            }
        )

    async def list_webhooks(self) -> list[Webhook]:
        """Refresh from the backend; on failure the known set is kept and the error re-raised."""
        backend = self._backend()
        try:
            fetched = await backend.list(self._state.webhooks)
        except BackendError as exc:
            logger.warning("webhook list refresh failed", mode=backend.mode.value, error=str(exc))
            self._commit(error=str(exc))
            raise
        merged = tuple(self._merge_session_counters(w) for w in fetched)
        self._commit(webhooks=merged, error=None)
        return list(merged)

    async def create_webhook(self, data: WebhookFormData) -> Webhook:
        validate_webhook_form(data)
        backend = self._backend()
        try:
            webhook = await backend.create(data)
        except BackendError as exc:
            self._commit(error=str(exc))
            raise
        self._commit(webhooks=self._state.webhooks + (webhook,), error=None)
        logger.info("webhook created", webhook_id=webhook.id, mode=backend.mode.value)
        return webhook

    async def update_webhook(self, webhook_id: str, data: WebhookFormData) -> Webhook:
        validate_webhook_form(data)
        existing = self.get_webhook(webhook_id)
        backend = self._backend()
        try:
            updated = await backend.update(existing, data)
        except BackendError as exc:
            self._commit(error=str(exc))
            raise

        # counters may have moved while the backend call was outstanding
        current = self.get_webhook(webhook_id)
        merged = updated.model_copy(
            update={
                "id": current.id,
                "environment_id": current.environment_id,
                "created_at": current.created_at,
                "last_triggered": current.last_triggered,
                "delivery_attempts": current.delivery_attempts,
                "successful_deliveries": current.successful_deliveries,
                "failed_deliveries": current.failed_deliveries,
            }
        )
        self._commit(
            webhooks=tuple(merged if w.id == webhook_id else w for w in self._state.webhooks),
            error=None,
        )
        logger.info(
            "webhook updated",
            webhook_id=webhook_id,
            mode=backend.mode.value,
            active_changed=existing.is_active != merged.is_active,
        )
        return merged

    async def delete_webhook(self, webhook_id: str) -> None:
        existing = self.get_webhook(webhook_id)
        backend = self._backend()
        try:
            await backend.delete(existing)
        except BackendError as exc:
            self._commit(error=str(exc))
            raise
        self._commit(
            webhooks=tuple(w for w in self._state.webhooks if w.id != webhook_id),
            error=None,
        )
        logger.info("webhook deleted", webhook_id=webhook_id, mode=backend.mode.value)

    async def test_webhook(self, webhook_id: str) -> WebhookTestResult:
        """Probe the webhook URL once and record the outcome.

        Probe failures are returned, not raised. An unexpected error inside the
        probe engine is recorded as an ``unknown`` result and then re-raised.
        """
        webhook = self.get_webhook(webhook_id)
        if not webhook.is_active:
            raise PreconditionError("Cannot test inactive webhook")
        if not webhook.url.strip():
            raise PreconditionError("Webhook URL is required")
        if webhook_id in self._testing:
            raise PreconditionError("Webhook test already in progress")

        self._testing.add(webhook_id)
        try:
            try:
                outcome = await self._probe.probe(
                    webhook.url, webhook.headers, webhook.id, webhook.name
                )
            except Exception as exc:
                logger.exception("webhook probe raised", webhook_id=webhook_id)
                self._record_test(
                    webhook_id,
                    failure_result(
                        FailurePoint.UNKNOWN,
                        error_message=str(exc) or type(exc).__name__,
                        error_code=type(exc).__name__,
                    ),
                )
                raise
            return self._record_test(webhook_id, outcome)
        finally:
            self._testing.discard(webhook_id)

    def _record_test(self, webhook_id: str, outcome: ProbeResult) -> WebhookTestResult:
        now = datetime.now(timezone.utc)
        result = WebhookTestResult(
            id=str(uuid4()),
            webhook_id=webhook_id,
            timestamp=now,
            **dict(outcome),
        )

        webhooks = self._state.webhooks
        current = self._find(webhook_id)
        if current is not None:
            last = current.last_triggered
            counted = current.model_copy(
                update={
                    "delivery_attempts": current.delivery_attempts + 1,
                    "successful_deliveries": current.successful_deliveries
                    + (1 if result.success else 0),
                    "failed_deliveries": current.failed_deliveries + (0 if result.success else 1),
                    "last_triggered": now if last is None or now >= last else last,
                }
            )
            webhooks = tuple(counted if w.id == webhook_id else w for w in webhooks)

        self._commit(webhooks=webhooks, test_results=(result,) + self._state.test_results)
        return result

    # -- settings surface ----------------------------------------------------

    async def check_connection(self) -> ConnectionCheck:
        """Verify the configured credential by listing webhooks remotely. State is untouched."""
        if not self._connection.has_credential:
            return ConnectionCheck(success=False, message="Management API key is not configured")
        if not self._connection.environment_id:
            return ConnectionCheck(success=False, message="Environment ID is not configured")
        try:
            await self._backend().list(())
        except BackendError as exc:
            return ConnectionCheck(success=False, message=f"Connection failed: {exc}")
        return ConnectionCheck(success=True, message="Connection successful! API key is valid.")

    def export_config(self) -> dict[str, Any]:
        def _environment(value: str | None) -> str | None:
            return None if value in (None, LOCAL_ENVIRONMENT_ID) else value

        return {
            "version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "environment_id": _environment(self._connection.environment_id),
            "webhooks": [
                {
                    **WebhookFormData.from_webhook(w).model_dump(),
                    "environment_id": _environment(w.environment_id),
                }
                for w in self._state.webhooks
            ],
        }

    async def import_config(self, payload: dict[str, Any]) -> ImportReport:
        report = ImportReport()
        entries: Sequence[Any] = payload.get("webhooks") or []
        for index, entry in enumerate(entries):
            name = entry.get("name") if isinstance(entry, dict) else None
            try:
                data = WebhookFormData.model_validate(entry)
                report.created.append(await self.create_webhook(data))
            except (PydanticValidationError, ValidationError, BackendError) as exc:
                report.errors.append({"index": index, "name": name, "error": str(exc)})
        logger.info(
            "webhook configuration imported",
            created=len(report.created),
            failed=len(report.errors),
        )
        return report
