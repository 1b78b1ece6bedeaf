"""featureflow exception hierarchy.

Every error carries a stable ``kind`` so callers (HTTP routes, workers) can
explain why an action was refused without parsing the message.
"""

from __future__ import annotations


class FeatureFlowError(Exception):
    """Base exception for all featureflow errors."""

    kind = "internal"
    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


# ---------------------------------------------------------------------------
# Validation: bad input, rejected before any I/O
# ---------------------------------------------------------------------------

class ValidationError(FeatureFlowError):
    """Request is malformed; nothing was read or written."""

    kind = "validation"


class UnknownVerdict(ValidationError):
    kind = "unknown_verdict"

    def __init__(self, verdict: object) -> None:
        self.verdict = verdict
        super().__init__(
            f"Invalid verdict {verdict!r}. Must be one of: approve, revise, reject"
        )


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

class ScheduleError(FeatureFlowError):
    """Schedule definition or lookup error."""

    kind = "schedule"


class UnknownPhase(ScheduleError):
    kind = "unknown_phase"

    def __init__(self, phase_id: object) -> None:
        self.phase_id = phase_id
        super().__init__(f"Unknown phase {phase_id!r}")


class InvalidSchedule(ScheduleError):
    kind = "invalid_schedule"


# ---------------------------------------------------------------------------
# State: the feature is not in a state that allows the action
# ---------------------------------------------------------------------------

class StateError(FeatureFlowError):
    """Transition refused because of the feature's current state."""

    kind = "state"

    def __init__(self, feature_id: str, message: str) -> None:
        self.feature_id = feature_id
        super().__init__(message)


class PhaseNotFound(StateError):
    kind = "phase_not_found"

    def __init__(self, feature_id: str, phase_id: str | None = None) -> None:
        self.phase_id = phase_id
        if phase_id is None:
            message = f"Feature {feature_id} has no current phase"
        else:
            message = f"Feature {feature_id} is at invalid phase {phase_id!r}"
        super().__init__(feature_id, message)


class NoGateAtPhase(StateError):
    kind = "no_gate_at_phase"

    def __init__(self, feature_id: str, phase_id: str) -> None:
        self.phase_id = phase_id
        super().__init__(feature_id, f"Phase {phase_id!r} does not require human review")


class GateRequiresApproval(StateError):
    kind = "gate_requires_approval"

    def __init__(self, feature_id: str, phase_id: str) -> None:
        self.phase_id = phase_id
        super().__init__(
            feature_id,
            f"Feature {feature_id} is waiting for human approval at phase {phase_id!r}",
        )


class CannotReviseFirstPhase(StateError):
    kind = "cannot_revise_first_phase"

    def __init__(self, feature_id: str, phase_id: str) -> None:
        self.phase_id = phase_id
        super().__init__(feature_id, f"Cannot revise from first phase {phase_id!r}")


class AlreadyTerminal(StateError):
    kind = "already_terminal"

    def __init__(self, feature_id: str, status: str) -> None:
        self.status = status
        super().__init__(feature_id, f"Feature {feature_id} is already {status}")


class AlreadyInPipeline(StateError):
    kind = "already_in_pipeline"

    def __init__(self, feature_id: str, status: str) -> None:
        self.status = status
        super().__init__(
            feature_id,
            f"Cannot submit feature {feature_id}: it is in '{status}', expected 'draft'",
        )


class NoEscalationPending(StateError):
    kind = "no_escalation_pending"

    def __init__(self, feature_id: str) -> None:
        super().__init__(feature_id, f"Feature {feature_id} has no pending escalation")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class FeatureNotFound(FeatureFlowError):
    kind = "not_found"

    def __init__(self, feature_id: str) -> None:
        self.feature_id = feature_id
        super().__init__(f"Feature {feature_id} not found")


class FeatureAlreadyExists(FeatureFlowError):
    kind = "already_exists"

    def __init__(self, feature_id: str) -> None:
        self.feature_id = feature_id
        super().__init__(f"Feature {feature_id} already exists")


class ConflictError(FeatureFlowError):
    """A concurrent writer changed the feature since it was read."""

    kind = "conflict"
    retryable = True

    def __init__(self, feature_id: str, expected_version: int | None = None) -> None:
        self.feature_id = feature_id
        self.expected_version = expected_version
        if expected_version is None:
            message = f"Concurrent update to feature {feature_id}"
        else:
            message = f"Feature {feature_id} changed since version {expected_version}"
        super().__init__(message)


class DependencyError(FeatureFlowError):
    """Backing store unreachable or failing."""

    kind = "dependency"
    retryable = True


class NotificationError(FeatureFlowError):
    """Activity sink or worker notifier failed. Never surfaced to callers."""

    kind = "notification"
