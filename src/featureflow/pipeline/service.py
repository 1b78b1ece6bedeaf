"""FeaturePipeline: every entry point that moves a feature.

Each call runs read -> guard -> engine -> audit append -> conditional write,
then publishes to the activity feed. A lost write race re-runs the whole
sequence from a fresh read; the transition is never recomputed from the
stale snapshot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from featureflow.audit.recorder import AuditRecorder
from featureflow.core.exceptions import ConflictError
from featureflow.core.logging import get_logger, log_extra
from featureflow.core.protocols import IFeatureStore
from featureflow.models.feature import Feature, Verdict, utcnow
from featureflow.models.schedule import Schedule
from featureflow.pipeline import engine
from featureflow.pipeline.engine import Transition
from featureflow.pipeline.gate import require_human_gate, require_resumable, require_worker_phase

log = get_logger(__name__)

Compute = Callable[[Feature, datetime], Transition]


class FeaturePipeline:
    """Applies verdicts to stored features with optimistic concurrency."""

    def __init__(
        self,
        *,
        store: IFeatureStore,
        schedule: Schedule,
        recorder: Optional[AuditRecorder] = None,
        max_retries: int = 3,
        escalation_threshold: int = engine.ESCALATION_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._schedule = schedule
        self._recorder = recorder or AuditRecorder()
        self._max_retries = max_retries
        self._escalation_threshold = escalation_threshold
        self._clock = clock

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def store(self) -> IFeatureStore:
        return self._store

    def close(self) -> None:
        self._recorder.close()

    # ---- reads / creation ----

    def get_feature(self, feature_id: str) -> Feature:
        return self._store.get(feature_id)

    def create_feature(self, feature_id: Optional[str] = None, title: str = "") -> Feature:
        """Store a new draft feature outside the pipeline."""
        now = self._clock()
        feature = Feature(
            id=feature_id or str(uuid4()),
            title=title.strip(),
            created_at=now,
            updated_at=now,
        )
        created = self._store.create(feature)
        log.info("Feature created", extra=log_extra(feature_id=created.id))
        return created

    # ---- transitions ----

    def advance_feature(
        self, feature_id: str, verdict: Verdict | str, notes: Optional[str] = None
    ) -> Feature:
        """Human verdict at a gated phase."""
        verdict = engine.parse_verdict(verdict)

        def compute(feature: Feature, now: datetime) -> Transition:
            engine.ensure_active(feature)
            require_human_gate(feature, self._schedule)
            return self._advance(feature, verdict, notes, now)

        return self._transact(feature_id, compute, verdict=verdict)

    def report_worker_verdict(
        self, feature_id: str, verdict: Verdict | str, notes: Optional[str] = None
    ) -> Feature:
        """Verdict from an automated worker at a non-gated phase."""
        verdict = engine.parse_verdict(verdict)

        def compute(feature: Feature, now: datetime) -> Transition:
            engine.ensure_active(feature)
            require_worker_phase(feature, self._schedule)
            return self._advance(feature, verdict, notes, now)

        return self._transact(feature_id, compute, verdict=verdict)

    def auto_advance(self, feature_id: str, notes: Optional[str] = None) -> Feature:
        """Ungated approve used to resume the pipeline after an external event."""

        def compute(feature: Feature, now: datetime) -> Transition:
            engine.ensure_active(feature)
            require_resumable(feature, self._schedule)
            return self._advance(feature, Verdict.APPROVE, notes, now)

        return self._transact(feature_id, compute, verdict=Verdict.APPROVE)

    def submit_feature(self, feature_id: str, notes: Optional[str] = None) -> Feature:
        def compute(feature: Feature, now: datetime) -> Transition:
            return engine.submit(feature, self._schedule, notes, now=now)

        return self._transact(feature_id, compute)

    def acknowledge_escalation(self, feature_id: str, notes: Optional[str] = None) -> Feature:
        def compute(feature: Feature, now: datetime) -> Transition:
            return engine.acknowledge_escalation(feature, self._schedule, notes, now=now)

        return self._transact(feature_id, compute)

    # ---- internals ----

    def _advance(
        self, feature: Feature, verdict: Verdict, notes: Optional[str], now: datetime
    ) -> Transition:
        return engine.advance(
            feature,
            verdict,
            self._schedule,
            notes,
            now=now,
            escalation_threshold=self._escalation_threshold,
        )

    def _transact(
        self, feature_id: str, compute: Compute, *, verdict: Optional[Verdict] = None
    ) -> Feature:
        attempt = 0
        while True:
            feature = self._store.read_for_update(feature_id)
            transition = compute(feature, self._clock())
            updated = self._recorder.append(transition.feature, transition.record)
            try:
                stored = self._store.write_if_unchanged(feature_id, feature.version, updated)
            except ConflictError:
                if attempt >= self._max_retries:
                    log.warning(
                        "Giving up after concurrent updates",
                        extra=log_extra(feature_id=feature_id, verdict=verdict, attempt=attempt),
                    )
                    raise
                attempt += 1
                log.warning(
                    "Concurrent update, retrying transition",
                    extra=log_extra(feature_id=feature_id, verdict=verdict, attempt=attempt),
                )
                continue
            break

        log.info(
            "Feature transitioned",
            extra=log_extra(
                feature_id=feature_id,
                phase=transition.record.phase,
                verdict=verdict,
                to_phase=stored.current_phase,
                status=str(stored.status),
                version=stored.version,
            ),
        )
        self._recorder.publish(stored, transition.record, transition.previous_worker)
        return stored
