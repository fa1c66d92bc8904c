"""Aggregate statistics and per-webhook health."""
from __future__ import annotations

from typing import Sequence

from webhook_manager.domain.enums import HealthStatus
from webhook_manager.domain.models import Webhook, WebhookStats, WebhookTestResult

HEALTHY_RATIO = 0.9
WARNING_RATIO = 0.7


def success_ratio(webhook: Webhook) -> float | None:
    if webhook.delivery_attempts <= 0:
        return None
    return webhook.successful_deliveries / webhook.delivery_attempts


def compute_stats(
    webhooks: Sequence[Webhook],
    test_results: Sequence[WebhookTestResult] = (),
) -> WebhookStats:
    """Recompute stats from scratch.

    ``success_rate`` is the mean of per-webhook success ratios over webhooks that
    have been tried at least once. ``average_response_time`` averages the recorded
    probe latencies of webhooks still in the set.
    """
    active = sum(1 for w in webhooks if w.is_active)
    ratios = [r for r in (success_ratio(w) for w in webhooks) if r is not None]

    known_ids = {w.id for w in webhooks}
    latencies = [r.response_time_ms for r in test_results if r.webhook_id in known_ids]

    return WebhookStats(
        total=len(webhooks),
        active=active,
        inactive=len(webhooks) - active,
        total_deliveries=sum(w.delivery_attempts for w in webhooks),
        success_rate=round(sum(ratios) / len(ratios) * 100, 2) if ratios else 0.0,
        average_response_time=round(sum(latencies) / len(latencies), 2) if latencies else 0.0,
    )


def webhook_health(webhook: Webhook) -> HealthStatus:
    if not webhook.is_active:
        return HealthStatus.INACTIVE
    ratio = success_ratio(webhook)
    if ratio is None:
        return HealthStatus.NO_DELIVERIES
    if ratio >= HEALTHY_RATIO:
        return HealthStatus.HEALTHY
    if ratio >= WARNING_RATIO:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL
