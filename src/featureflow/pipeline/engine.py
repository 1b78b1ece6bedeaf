"""Transition engine: the feature pipeline state machine.

Pure functions only. Given a feature snapshot, a verdict and the schedule,
compute the next feature state plus the record describing the transition.
Nothing here reads or writes a store; the service re-runs these functions
from a fresh read whenever a conditional write loses a race.

States are the schedule's phase ids plus the absorbing ``done`` and
``cancelled`` statuses:

- approve: step forward one phase, or ``done`` after the last phase
- revise:  step back one phase; past the escalation threshold stay put and
           flag the feature for a human instead
- reject:  ``cancelled`` from anywhere
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from featureflow.core.exceptions import (
    AlreadyInPipeline,
    AlreadyTerminal,
    CannotReviseFirstPhase,
    NoEscalationPending,
    PhaseNotFound,
    UnknownVerdict,
)
from featureflow.models.feature import (
    AttentionType,
    Feature,
    FeatureStatus,
    TransitionAction,
    TransitionRecord,
    Verdict,
    utcnow,
)
from featureflow.models.schedule import Phase, Schedule

# Revisions beyond this count escalate instead of looping back again.
ESCALATION_THRESHOLD = 2


@dataclass(frozen=True)
class Transition:
    """Result of one engine step: the new state and its log record.

    ``feature`` does not include ``record`` in its transition log yet; the
    audit recorder appends it as part of the same conditional write.
    """

    feature: Feature
    record: TransitionRecord
    previous_worker: Optional[str] = None

    @property
    def worker_changed(self) -> bool:
        return (
            self.feature.current_worker is not None
            and self.feature.current_worker != self.previous_worker
        )


def parse_verdict(value: object) -> Verdict:
    """Normalize ``value`` into a Verdict or raise UnknownVerdict."""
    if isinstance(value, Verdict):
        return value
    if isinstance(value, str):
        try:
            return Verdict(value.strip().lower())
        except ValueError:
            pass
    raise UnknownVerdict(value)


def current_phase(feature: Feature, schedule: Schedule) -> Phase:
    """The schedule phase the feature is at, or PhaseNotFound."""
    if feature.current_phase is None:
        raise PhaseNotFound(feature.id)
    if feature.current_phase not in schedule:
        raise PhaseNotFound(feature.id, feature.current_phase)
    return schedule.get(feature.current_phase)


def ensure_active(feature: Feature) -> None:
    if feature.is_terminal:
        raise AlreadyTerminal(feature.id, str(feature.status))


def _stamp(feature: Feature, now: Optional[datetime]) -> datetime:
    """Timestamp for a new record, never earlier than the last logged one."""
    stamp = now or utcnow()
    if feature.transition_log and feature.transition_log[-1].timestamp > stamp:
        return feature.transition_log[-1].timestamp
    return stamp


def _enter(phase: Phase, schedule: Schedule) -> dict:
    """Field updates for moving onto ``phase``."""
    return {
        "current_phase": phase.id,
        "current_worker": phase.worker_id,
        "status": schedule.status_for(phase.id),
    }


def _clear_attention() -> dict:
    return {"needs_attention": False, "attention_type": AttentionType.NONE}


def advance(
    feature: Feature,
    verdict: Verdict | str,
    schedule: Schedule,
    notes: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    escalation_threshold: int = ESCALATION_THRESHOLD,
) -> Transition:
    """Apply ``verdict`` to ``feature`` at its current phase."""
    verdict = parse_verdict(verdict)
    ensure_active(feature)
    phase = current_phase(feature, schedule)
    stamp = _stamp(feature, now)

    updates: dict = {}
    revision_count = feature.revision_count

    if verdict == Verdict.APPROVE:
        nxt = schedule.next_phase(phase.id)
        if nxt is None:
            updates.update(status=FeatureStatus.DONE, **_clear_attention())
        else:
            updates.update(_enter(nxt, schedule))
            if nxt.human_gate:
                updates.update(needs_attention=True, attention_type=AttentionType.REVIEW)
            else:
                updates.update(_clear_attention())

    elif verdict == Verdict.REVISE:
        prev = schedule.prev_phase(phase.id)
        if prev is None:
            raise CannotReviseFirstPhase(feature.id, phase.id)
        revision_count += 1
        updates["revision_count"] = revision_count
        if revision_count > escalation_threshold:
            # Phase and status stay put; a human decides what happens next.
            updates.update(needs_attention=True, attention_type=AttentionType.ERROR)
        else:
            updates.update(_enter(prev, schedule))
            updates.update(_clear_attention())

    else:
        updates.update(
            status=FeatureStatus.CANCELLED,
            needs_attention=True,
            attention_type=AttentionType.ERROR,
        )

    updates["updated_at"] = stamp
    record = TransitionRecord(
        phase=phase.id,
        action=TransitionAction.VERDICT,
        verdict=verdict,
        timestamp=stamp,
        notes=notes,
        revision_count=revision_count,
    )
    return Transition(
        feature=feature.model_copy(update=updates),
        record=record,
        previous_worker=feature.current_worker,
    )


def submit(
    feature: Feature,
    schedule: Schedule,
    notes: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Transition:
    """Enter a draft feature into the pipeline at the first phase.

    This is the only operation that resets the revision count.
    """
    ensure_active(feature)
    if feature.status != FeatureStatus.DRAFT:
        raise AlreadyInPipeline(feature.id, str(feature.status))
    first = schedule.first
    stamp = _stamp(feature, now)
    updates = {
        **_enter(first, schedule),
        **_clear_attention(),
        "revision_count": 0,
        "updated_at": stamp,
    }
    if first.human_gate:
        updates.update(needs_attention=True, attention_type=AttentionType.REVIEW)
    record = TransitionRecord(
        phase=first.id,
        action=TransitionAction.SUBMIT,
        timestamp=stamp,
        notes=notes or "Feature submitted",
        revision_count=0,
    )
    return Transition(
        feature=feature.model_copy(update=updates),
        record=record,
        previous_worker=feature.current_worker,
    )


def acknowledge_escalation(
    feature: Feature,
    schedule: Schedule,
    notes: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Transition:
    """Clear a revision escalation so the pipeline can resume.

    ``attention_type`` stays ``error`` as the marker that a human looked at
    it; ``needs_attention`` goes false.
    """
    ensure_active(feature)
    phase = current_phase(feature, schedule)
    if not feature.is_escalated:
        raise NoEscalationPending(feature.id)
    stamp = _stamp(feature, now)
    record = TransitionRecord(
        phase=phase.id,
        action=TransitionAction.ACKNOWLEDGE,
        timestamp=stamp,
        notes=notes,
        revision_count=feature.revision_count,
    )
    return Transition(
        feature=feature.model_copy(update={"needs_attention": False, "updated_at": stamp}),
        record=record,
        previous_worker=feature.current_worker,
    )
