"""Shared test doubles: re-exports memory backends plus feature builders."""

from __future__ import annotations

from typing import Any

from featureflow.models.feature import AttentionType, Feature
from featureflow.models.schedule import Schedule
from featureflow.persistence.memory_backend import (
    MemoryActivitySink,
    MemoryFeatureStore,
    MemoryWorkerNotifier,
)


def feature_at(phase_id: str, schedule: Schedule, feature_id: str = "feat-1", **overrides: Any) -> Feature:
    """Build an active feature sitting at ``phase_id`` with consistent fields."""
    phase = schedule.get(phase_id)
    fields: dict[str, Any] = {
        "id": feature_id,
        "title": "Test feature",
        "current_phase": phase.id,
        "current_worker": phase.worker_id,
        "status": schedule.status_for(phase.id),
        "needs_attention": phase.human_gate,
        "attention_type": AttentionType.REVIEW if phase.human_gate else AttentionType.NONE,
    }
    fields.update(overrides)
    return Feature(**fields)


__all__ = ["MemoryActivitySink", "MemoryFeatureStore", "MemoryWorkerNotifier", "feature_at"]
