"""Gate guard: preconditions checked before a verdict reaches the engine."""

from __future__ import annotations

from featureflow.core.exceptions import GateRequiresApproval, NoGateAtPhase
from featureflow.models.feature import Feature
from featureflow.models.schedule import Phase, Schedule
from featureflow.pipeline.engine import current_phase


def require_human_gate(feature: Feature, schedule: Schedule) -> Phase:
    """Return the current phase if it accepts a human verdict."""
    phase = current_phase(feature, schedule)
    if not phase.human_gate:
        raise NoGateAtPhase(feature.id, phase.id)
    return phase


def require_worker_phase(feature: Feature, schedule: Schedule) -> Phase:
    """Return the current phase if an automated worker may rule on it."""
    phase = current_phase(feature, schedule)
    if phase.human_gate or feature.is_escalated:
        raise GateRequiresApproval(feature.id, phase.id)
    return phase


def require_resumable(feature: Feature, schedule: Schedule) -> Phase:
    """Return the current phase if the pipeline may continue without a human.

    Gated phases always need a human verdict, even after a revise or an
    acknowledged escalation has cleared ``needs_attention``.
    """
    phase = current_phase(feature, schedule)
    if phase.human_gate or feature.needs_attention:
        raise GateRequiresApproval(feature.id, phase.id)
    return phase
