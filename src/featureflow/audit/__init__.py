"""Transition audit log and best-effort activity notification."""

from __future__ import annotations

from featureflow.audit.recorder import AuditRecorder
from featureflow.audit.sinks import GatewayWorkerNotifier, HttpActivitySink, LoggingActivitySink
from featureflow.core.config import AppSettings


def create_recorder(settings: AppSettings | None = None) -> AuditRecorder:
    """Create an AuditRecorder wired to the configured sinks."""
    if settings is None:
        settings = AppSettings()
    activity = settings.activity

    sinks: list = [LoggingActivitySink()]
    if activity.webhook_url:
        sinks.append(HttpActivitySink(
            activity.webhook_url,
            token=activity.webhook_token,
            timeout_seconds=activity.timeout_seconds,
        ))

    notifiers: list = []
    if activity.gateway_url:
        notifiers.append(GatewayWorkerNotifier(
            activity.gateway_url,
            token=activity.gateway_token,
            model=activity.gateway_model,
            timeout_seconds=activity.timeout_seconds,
        ))

    return AuditRecorder.threaded(
        sinks,
        notifiers,
        timeout_seconds=activity.timeout_seconds,
        max_workers=activity.max_workers,
    )


__all__ = ["AuditRecorder", "create_recorder"]
