"""In-memory backends for unit tests and local runs: dict-backed fakes."""

from __future__ import annotations

import threading

from featureflow.audit.events import ActivityEvent
from featureflow.core.exceptions import ConflictError, FeatureAlreadyExists, FeatureNotFound
from featureflow.models.feature import Feature


class MemoryFeatureStore:
    """Dict-backed IFeatureStore. The lock only guards the dict itself."""

    def __init__(self) -> None:
        self._features: dict[str, Feature] = {}
        self._lock = threading.Lock()

    def create(self, feature: Feature) -> Feature:
        with self._lock:
            if feature.id in self._features:
                raise FeatureAlreadyExists(feature.id)
            stored = feature.model_copy(update={"version": 1}, deep=True)
            self._features[feature.id] = stored
            return stored.model_copy(deep=True)

    def get(self, feature_id: str) -> Feature:
        with self._lock:
            try:
                return self._features[feature_id].model_copy(deep=True)
            except KeyError:
                raise FeatureNotFound(feature_id) from None

    def read_for_update(self, feature_id: str) -> Feature:
        return self.get(feature_id)

    def write_if_unchanged(
        self, feature_id: str, expected_version: int, feature: Feature
    ) -> Feature:
        with self._lock:
            current = self._features.get(feature_id)
            if current is None:
                raise FeatureNotFound(feature_id)
            if current.version != expected_version:
                raise ConflictError(feature_id, expected_version)
            stored = feature.model_copy(update={"version": expected_version + 1}, deep=True)
            self._features[feature_id] = stored
            return stored.model_copy(deep=True)

    def ping(self) -> bool:
        return True


class MemoryActivitySink:
    """Collects activity events in a list for unit tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, ActivityEvent]] = []

    def record(self, feature_id: str, event: ActivityEvent) -> None:
        self.events.append((feature_id, event))


class MemoryWorkerNotifier:
    """Collects worker assignments for unit tests."""

    def __init__(self) -> None:
        self.assignments: list[tuple[str, str, str]] = []

    def worker_assigned(self, feature_id: str, worker_id: str, phase_id: str) -> None:
        self.assignments.append((feature_id, worker_id, phase_id))
