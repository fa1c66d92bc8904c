from __future__ import annotations

import asyncio

import pytest

from webhook_manager.core.exceptions import NotFoundError, PreconditionError, ValidationError
from webhook_manager.domain.enums import ExecutionMode, FailurePoint, StatusFilter
from webhook_manager.domain.models import LOCAL_ENVIRONMENT_ID, ConnectionConfig, HostContext, ProbeResult
from webhook_manager.services.registry import WebhookRegistry, make_backend_factory

from tests.utils import API_KEY, ENVIRONMENT_ID, make_form


class StubProbe:
    """Probe engine double returning a fixed outcome or raising."""

    def __init__(self, outcome: ProbeResult | None = None, *, error: Exception | None = None):
        self.outcome = outcome or ProbeResult(success=True, status_code=200, response_time_ms=40)
        self.error = error
        self.release = asyncio.Event()
        self.release.set()
        self.calls = 0

    async def probe(self, url, headers, webhook_id, webhook_name):
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.outcome


def stub_registry(settings, probe: StubProbe) -> WebhookRegistry:
    return WebhookRegistry(probe=probe, backend_factory=make_backend_factory(settings))


def assert_stats_consistent(registry: WebhookRegistry) -> None:
    stats = registry.state.stats
    webhooks = registry.state.webhooks
    assert stats.total == len(webhooks)
    assert stats.active + stats.inactive == stats.total
    assert stats.active == sum(1 for w in webhooks if w.is_active)
    assert stats.total_deliveries == sum(w.delivery_attempts for w in webhooks)
    assert 0 <= stats.success_rate <= 100
    for w in webhooks:
        assert w.successful_deliveries + w.failed_deliveries == w.delivery_attempts


@pytest.mark.asyncio
async def test_create_in_local_mode(registry):
    webhook = await registry.create_webhook(make_form())

    assert registry.mode == ExecutionMode.FALLBACK
    assert webhook.name == "T1"
    assert webhook.environment_id == LOCAL_ENVIRONMENT_ID
    assert [t.codename for t in webhook.triggers] == ["asset_created"]
    assert webhook.triggers[0].is_enabled is True
    assert webhook.delivery_attempts == 0
    assert webhook.last_triggered is None
    assert registry.state.webhooks == (webhook,)
    assert registry.state.stats.total == 1
    assert registry.state.stats.active == 1
    assert_stats_consistent(registry)


@pytest.mark.asyncio
async def test_create_ids_are_unique(registry):
    first = await registry.create_webhook(make_form(name="A"))
    second = await registry.create_webhook(make_form(name="B"))
    assert first.id != second.id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"name": "   "}, "Webhook name is required"),
        ({"url": ""}, "Webhook URL is required"),
        ({"url": "not a url"}, "Webhook URL must be a valid URL"),
        ({"url": "ftp://files.example.com/x"}, "Webhook URL must be a valid URL"),
        ({"triggers": []}, "At least one trigger must be selected"),
    ],
)
async def test_invalid_form_is_rejected_without_side_effects(registry, overrides, message):
    with pytest.raises(ValidationError) as exc_info:
        await registry.create_webhook(make_form(**overrides))

    assert message in exc_info.value.errors
    assert registry.state.webhooks == ()
    assert registry.state.stats.total == 0


@pytest.mark.asyncio
async def test_validation_reports_every_problem(registry):
    with pytest.raises(ValidationError) as exc_info:
        await registry.create_webhook(make_form(name="", url="", triggers=[]))
    assert len(exc_info.value.errors) == 3


@pytest.mark.asyncio
async def test_deactivating_moves_active_to_inactive(registry):
    webhook = await registry.create_webhook(make_form())
    await registry.update_webhook(webhook.id, make_form(is_active=False))

    assert registry.state.stats.active == 0
    assert registry.state.stats.inactive == 1
    assert_stats_consistent(registry)


@pytest.mark.asyncio
async def test_update_replaces_fields_and_keeps_identity(settings):
    probe = StubProbe()
    registry = stub_registry(settings, probe)
    webhook = await registry.create_webhook(make_form())
    await registry.test_webhook(webhook.id)

    updated = await registry.update_webhook(
        webhook.id,
        make_form(
            name="Renamed",
            url="https://other.example.com/in",
            triggers=["content_item_variant_published", "content_item_variant_unpublished"],
            headers={"X-Token": "t"},
        ),
    )

    assert updated.id == webhook.id
    assert updated.created_at == webhook.created_at
    assert updated.name == "Renamed"
    assert updated.headers == {"X-Token": "t"}
    assert [t.codename for t in updated.triggers] == [
        "content_item_variant_published",
        "content_item_variant_unpublished",
    ]
    assert updated.delivery_attempts == 1
    assert updated.successful_deliveries == 1
    assert updated.last_triggered is not None


@pytest.mark.asyncio
async def test_update_and_delete_missing_webhook(registry):
    with pytest.raises(NotFoundError):
        await registry.update_webhook("missing", make_form())
    with pytest.raises(NotFoundError):
        await registry.delete_webhook("missing")


@pytest.mark.asyncio
async def test_delete_removes_webhook(registry):
    keep = await registry.create_webhook(make_form(name="keep"))
    drop = await registry.create_webhook(make_form(name="drop"))

    await registry.delete_webhook(drop.id)

    assert registry.state.webhooks == (keep,)
    assert registry.state.stats.total == 1


@pytest.mark.asyncio
async def test_inactive_webhook_cannot_be_tested(settings):
    probe = StubProbe()
    registry = stub_registry(settings, probe)
    webhook = await registry.create_webhook(make_form(is_active=False))

    with pytest.raises(PreconditionError, match="Cannot test inactive webhook"):
        await registry.test_webhook(webhook.id)

    assert probe.calls == 0
    assert registry.state.test_results == ()
    assert registry.get_webhook(webhook.id).delivery_attempts == 0


@pytest.mark.asyncio
async def test_testing_missing_webhook(registry):
    with pytest.raises(NotFoundError):
        await registry.test_webhook("nope")


@pytest.mark.asyncio
async def test_successful_test_updates_counters_and_history(registry, hook_server):
    webhook = await registry.create_webhook(
        make_form(url=str(hook_server.make_url("/ok")), headers={"X-Secret": "abc"})
    )

    result = await registry.test_webhook(webhook.id)

    assert result.success is True
    assert result.webhook_id == webhook.id
    stored = registry.get_webhook(webhook.id)
    assert stored.delivery_attempts == 1
    assert stored.successful_deliveries == 1
    assert stored.failed_deliveries == 0
    assert stored.last_triggered == result.timestamp
    assert registry.state.test_results[0] == result
    assert registry.state.stats.success_rate == 100.0
    assert registry.state.stats.average_response_time == result.response_time_ms
    headers, _ = hook_server.received[0]
    assert headers["X-Secret"] == "abc"
    assert_stats_consistent(registry)


@pytest.mark.asyncio
async def test_failed_test_updates_failure_counter(registry, hook_server):
    webhook = await registry.create_webhook(make_form(url=str(hook_server.make_url("/status/500"))))

    result = await registry.test_webhook(webhook.id)

    assert result.success is False
    assert result.failure_point == FailurePoint.SERVER_ERROR
    stored = registry.get_webhook(webhook.id)
    assert stored.delivery_attempts == 1
    assert stored.failed_deliveries == 1
    assert registry.state.stats.success_rate == 0.0
    assert_stats_consistent(registry)


@pytest.mark.asyncio
async def test_unreachable_host_is_reported_not_raised(registry):
    webhook = await registry.create_webhook(make_form(url="https://example.invalid/hook"))

    result = await registry.test_webhook(webhook.id)

    assert result.success is False
    assert result.failure_point in {
        FailurePoint.CONNECTION,
        FailurePoint.NETWORK,
        FailurePoint.TIMEOUT,
    }
    assert result.failure_details is not None
    assert result.troubleshooting is not None
    assert registry.get_webhook(webhook.id).delivery_attempts == 1


@pytest.mark.asyncio
async def test_last_triggered_never_moves_backwards(settings):
    registry = stub_registry(settings, StubProbe())
    webhook = await registry.create_webhook(make_form())

    first = await registry.test_webhook(webhook.id)
    second = await registry.test_webhook(webhook.id)

    assert second.timestamp >= first.timestamp
    assert registry.get_webhook(webhook.id).last_triggered == second.timestamp
    assert [r.id for r in registry.test_results(webhook.id)] == [second.id, first.id]
    assert len(registry.test_results(webhook.id, limit=1)) == 1


@pytest.mark.asyncio
async def test_probe_engine_error_is_recorded_then_raised(settings):
    registry = stub_registry(settings, StubProbe(error=RuntimeError("engine broke")))
    webhook = await registry.create_webhook(make_form())

    with pytest.raises(RuntimeError):
        await registry.test_webhook(webhook.id)

    recorded = registry.state.test_results[0]
    assert recorded.success is False
    assert recorded.failure_point == FailurePoint.UNKNOWN
    assert recorded.error == "engine broke"
    assert registry.get_webhook(webhook.id).failed_deliveries == 1


@pytest.mark.asyncio
async def test_concurrent_test_of_same_webhook_is_rejected(settings):
    probe = StubProbe()
    probe.release.clear()
    registry = stub_registry(settings, probe)
    webhook = await registry.create_webhook(make_form())

    running = asyncio.create_task(registry.test_webhook(webhook.id))
    await asyncio.sleep(0)
    with pytest.raises(PreconditionError, match="already in progress"):
        await registry.test_webhook(webhook.id)

    probe.release.set()
    await running
    assert registry.get_webhook(webhook.id).delivery_attempts == 1

    # guard is released once the probe finishes
    await registry.test_webhook(webhook.id)
    assert registry.get_webhook(webhook.id).delivery_attempts == 2


@pytest.mark.asyncio
async def test_deleted_webhook_latency_leaves_average(settings):
    registry = stub_registry(
        settings, StubProbe(ProbeResult(success=True, status_code=200, response_time_ms=100))
    )
    a = await registry.create_webhook(make_form(name="a"))
    b = await registry.create_webhook(make_form(name="b"))
    await registry.test_webhook(a.id)
    registry._probe = StubProbe(ProbeResult(success=True, status_code=200, response_time_ms=300))
    await registry.test_webhook(b.id)
    assert registry.state.stats.average_response_time == 200.0

    await registry.delete_webhook(b.id)
    assert registry.state.stats.average_response_time == 100.0


def test_mode_follows_connection(settings, probe_engine):
    registry = WebhookRegistry.from_settings(settings, probe=probe_engine)
    assert registry.mode == ExecutionMode.UNKNOWN

    registry.apply_host_context(HostContext(environment_id=ENVIRONMENT_ID))
    assert registry.mode == ExecutionMode.FALLBACK
    assert registry.connection.environment_id == ENVIRONMENT_ID

    registry.configure(ConnectionConfig(api_key=API_KEY, environment_id=ENVIRONMENT_ID))
    assert registry.mode == ExecutionMode.API

    registry.configure(ConnectionConfig(api_key="   ", environment_id=ENVIRONMENT_ID))
    assert registry.mode == ExecutionMode.FALLBACK


def test_credential_without_environment_stays_local(registry):
    registry.configure(ConnectionConfig(api_key=API_KEY))
    assert registry.mode == ExecutionMode.FALLBACK


def test_host_context_does_not_override_configured_environment(registry):
    registry.configure(ConnectionConfig(environment_id="mine"))
    registry.apply_host_context(HostContext(environment_id="host"))
    assert registry.connection.environment_id == "mine"


@pytest.mark.asyncio
async def test_search_by_term_and_status(registry):
    orders = await registry.create_webhook(make_form(name="Orders", url="https://shop.example.com/o"))
    await registry.create_webhook(make_form(name="Search index", url="https://search.example.com/i"))
    paused = await registry.create_webhook(
        make_form(name="Paused", url="https://shop.example.com/p", is_active=False)
    )

    assert [w.id for w in registry.search("ORDERS")] == [orders.id]
    assert {w.id for w in registry.search("shop")} == {orders.id, paused.id}
    assert [w.id for w in registry.search(status=StatusFilter.INACTIVE)] == [paused.id]
    assert len(registry.search(status=StatusFilter.ACTIVE)) == 2
    assert len(registry.search()) == 3


@pytest.mark.asyncio
async def test_export_then_import(registry, settings, probe_engine):
    await registry.create_webhook(make_form(name="A", headers={"X-Key": "1"}))
    await registry.create_webhook(make_form(name="B", is_active=False))

    exported = registry.export_config()
    assert exported["version"] == 1
    assert exported["environment_id"] is None
    assert [w["name"] for w in exported["webhooks"]] == ["A", "B"]
    assert exported["webhooks"][0]["environment_id"] is None

    target = WebhookRegistry(probe=probe_engine, backend_factory=make_backend_factory(settings))
    exported["webhooks"].append({"name": "", "url": "https://x.example.com", "triggers": []})
    report = await target.import_config(exported)

    assert [w.name for w in report.created] == ["A", "B"]
    assert report.created[0].headers == {"X-Key": "1"}
    assert report.created[1].is_active is False
    assert len(report.errors) == 1
    assert report.errors[0]["index"] == 2
    assert "Webhook name is required" in report.errors[0]["error"]
    assert target.state.stats.total == 2


@pytest.mark.asyncio
async def test_check_connection_without_credential(registry):
    check = await registry.check_connection()
    assert check.success is False
    assert "API key" in check.message
