"""Activity feed events derived from transition records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from featureflow.core.types import JsonDict
from featureflow.models.feature import (
    Feature,
    FeatureStatus,
    TransitionAction,
    TransitionRecord,
    Verdict,
    utcnow,
)


class ActivityEventType(StrEnum):
    HANDOFF = "handoff"
    REVISION = "revision"
    GATE = "gate"
    DECISION = "decision"


class ActivityEvent(BaseModel):
    """One entry for the external activity feed."""

    feature_id: str
    agent_id: str
    step_id: str
    event_type: ActivityEventType
    content: str
    metadata: JsonDict = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


def _describe(feature: Feature, record: TransitionRecord) -> tuple[ActivityEventType, str]:
    if record.action == TransitionAction.SUBMIT:
        return ActivityEventType.HANDOFF, f"Feature submitted. Routing to {feature.current_worker}..."
    if record.action == TransitionAction.ACKNOWLEDGE:
        return ActivityEventType.GATE, f"Escalation acknowledged at {record.phase}. Pipeline may resume."
    if record.verdict == Verdict.APPROVE:
        if feature.status == FeatureStatus.DONE:
            return ActivityEventType.DECISION, "Final phase approved. Feature done."
        if feature.needs_attention:
            return ActivityEventType.GATE, f"Approved. Waiting for human review at {feature.current_phase}"
        return ActivityEventType.HANDOFF, f"Approved. Advancing to {feature.current_phase}"
    if record.verdict == Verdict.REVISE:
        if feature.is_escalated:
            return (
                ActivityEventType.REVISION,
                f"Revision limit exceeded at {record.phase}. Escalated for human review.",
            )
        return ActivityEventType.REVISION, f"Revision requested. Returning to {feature.current_phase}"
    return ActivityEventType.DECISION, "Rejected. Feature cancelled."


def event_for(feature: Feature, record: TransitionRecord) -> ActivityEvent:
    """Build the activity event for ``record`` applied to ``feature``."""
    event_type, content = _describe(feature, record)
    return ActivityEvent(
        feature_id=feature.id,
        agent_id=feature.current_worker or "system",
        step_id=feature.current_phase or "unknown",
        event_type=event_type,
        content=content,
        metadata={
            "action": str(record.action),
            "verdict": str(record.verdict) if record.verdict else None,
            "notes": record.notes,
            "from_phase": record.phase,
            "to_phase": feature.current_phase,
            "status": str(feature.status),
            "revision_count": feature.revision_count,
            "version": feature.version,
        },
    )
