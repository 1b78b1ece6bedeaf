"""Protocol interfaces for all featureflow collaborators.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from featureflow.core.types import FeatureId, PhaseId, Version, WorkerId

if TYPE_CHECKING:
    from featureflow.audit.events import ActivityEvent
    from featureflow.models.feature import Feature


# ---------------------------------------------------------------------------
# Persistence: Feature Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFeatureStore(Protocol):
    """Feature records with optimistic concurrency.

    ``read_for_update`` returns the feature with its current ``version``;
    ``write_if_unchanged`` persists a new state only if the stored version
    still equals ``expected_version`` and returns the stored feature with the
    bumped version. State and transition log are written together.
    """

    def create(self, feature: Feature) -> Feature: ...

    def get(self, feature_id: FeatureId) -> Feature: ...

    def read_for_update(self, feature_id: FeatureId) -> Feature: ...

    def write_if_unchanged(
        self, feature_id: FeatureId, expected_version: Version, feature: Feature
    ) -> Feature: ...

    def ping(self) -> bool: ...


# ---------------------------------------------------------------------------
# Audit: activity feed and worker notification
# ---------------------------------------------------------------------------

@runtime_checkable
class IActivitySink(Protocol):
    """Best-effort activity feed. Failures are logged, never propagated."""

    def record(self, feature_id: FeatureId, event: ActivityEvent) -> None: ...


@runtime_checkable
class IWorkerNotifier(Protocol):
    """Told which worker now owns a feature. Delivery is not our concern."""

    def worker_assigned(self, feature_id: FeatureId, worker_id: WorkerId, phase_id: PhaseId) -> None: ...
