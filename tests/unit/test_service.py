"""Tests for FeaturePipeline: read-compute-conditional-write around the engine."""

from __future__ import annotations

import logging
import threading

import pytest

from featureflow.audit.recorder import AuditRecorder
from featureflow.core.exceptions import (
    AlreadyTerminal,
    CannotReviseFirstPhase,
    ConflictError,
    DependencyError,
    FeatureNotFound,
    GateRequiresApproval,
    NoGateAtPhase,
    UnknownVerdict,
)
from featureflow.models.feature import AttentionType, FeatureStatus, TransitionAction, Verdict
from featureflow.models.schedule import load_schedule
from featureflow.pipeline.service import FeaturePipeline
from tests.fakes import MemoryActivitySink, MemoryFeatureStore, MemoryWorkerNotifier, feature_at


class RacingStore(MemoryFeatureStore):
    """Holds the first ``parties`` reads until all of them have read."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=5)
        self._reads = 0
        self._reads_lock = threading.Lock()

    def read_for_update(self, feature_id):
        feature = super().read_for_update(feature_id)
        with self._reads_lock:
            self._reads += 1
            first_round = self._reads <= self._barrier.parties
        if first_round:
            self._barrier.wait()
        return feature


class InterleavingStore(MemoryFeatureStore):
    """Runs ``interloper`` once, right after the first read."""

    def __init__(self) -> None:
        super().__init__()
        self.interloper = None
        self.reads = 0

    def read_for_update(self, feature_id):
        feature = super().read_for_update(feature_id)
        self.reads += 1
        if self.interloper is not None:
            interloper, self.interloper = self.interloper, None
            interloper()
        return feature


class AlwaysConflictStore(MemoryFeatureStore):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def write_if_unchanged(self, feature_id, expected_version, feature):
        self.writes += 1
        raise ConflictError(feature_id, expected_version)


class UnreachableStore(MemoryFeatureStore):
    def read_for_update(self, feature_id):
        raise DependencyError("store unreachable")


class ExplodingSink:
    def record(self, feature_id, event):
        raise RuntimeError("activity feed down")


@pytest.fixture
def schedule():
    return load_schedule()


@pytest.fixture
def sink():
    return MemoryActivitySink()


@pytest.fixture
def notifier():
    return MemoryWorkerNotifier()


@pytest.fixture
def store():
    return MemoryFeatureStore()


@pytest.fixture
def pipeline(store, schedule, sink, notifier):
    return FeaturePipeline(
        store=store,
        schedule=schedule,
        recorder=AuditRecorder([sink], [notifier]),
    )


def _seed(store, schedule, phase_id, **overrides):
    return store.create(feature_at(phase_id, schedule, **overrides))


class TestScenarios:
    def test_approve_at_spec_gate(self, pipeline, store, schedule):
        _seed(store, schedule, "spec")
        feature = pipeline.advance_feature("feat-1", "approve")
        assert feature.current_phase == "design"
        assert feature.status == FeatureStatus.DESIGN_REVIEW
        assert feature.needs_attention is False

    def test_revise_at_build(self, pipeline, store, schedule):
        _seed(store, schedule, "build")
        feature = pipeline.report_worker_verdict("feat-1", "revise", "flaky tests")
        assert feature.revision_count == 1
        assert feature.current_phase == "design"
        assert feature.status == FeatureStatus.DESIGN_REVIEW

    def test_approve_at_ship_is_done(self, pipeline, store, schedule):
        _seed(store, schedule, "ship")
        feature = pipeline.advance_feature("feat-1", Verdict.APPROVE)
        assert feature.status == FeatureStatus.DONE
        with pytest.raises(AlreadyTerminal):
            pipeline.advance_feature("feat-1", "approve")
        with pytest.raises(AlreadyTerminal):
            pipeline.auto_advance("feat-1")

    def test_reject_cancels(self, pipeline, store, schedule):
        _seed(store, schedule, "spec")
        feature = pipeline.advance_feature("feat-1", "reject", "out of scope")
        assert feature.status == FeatureStatus.CANCELLED
        assert feature.needs_attention is True
        assert feature.attention_type == AttentionType.ERROR
        with pytest.raises(AlreadyTerminal):
            pipeline.report_worker_verdict("feat-1", "approve")


class TestFullRun:
    def test_log_grows_by_one_per_transition(self, pipeline, schedule):
        pipeline.create_feature("feat-9", "Dark mode")
        steps = [
            lambda: pipeline.submit_feature("feat-9"),
            lambda: pipeline.auto_advance("feat-9"),                       # intake -> spec
            lambda: pipeline.advance_feature("feat-9", "approve"),         # spec -> design
            lambda: pipeline.report_worker_verdict("feat-9", "approve"),   # design -> build
            lambda: pipeline.report_worker_verdict("feat-9", "approve"),   # build -> qa
            lambda: pipeline.report_worker_verdict("feat-9", "approve"),   # qa -> ship
            lambda: pipeline.advance_feature("feat-9", "approve"),         # ship -> done
        ]
        for count, step in enumerate(steps, start=1):
            feature = step()
            assert len(feature.transition_log) == count
            assert feature.current_phase in schedule or feature.is_terminal

        assert feature.status == FeatureStatus.DONE
        assert [r.phase for r in feature.transition_log] == [
            "intake", "intake", "spec", "design", "build", "qa", "ship",
        ]
        timestamps = [r.timestamp for r in feature.transition_log]
        assert timestamps == sorted(timestamps)
        assert feature.version == 8

    def test_submit_records_action(self, pipeline):
        pipeline.create_feature("feat-9", "Dark mode")
        feature = pipeline.submit_feature("feat-9", "via command bar")
        assert feature.current_phase == "intake"
        assert feature.transition_log[0].action == TransitionAction.SUBMIT
        assert feature.transition_log[0].notes == "via command bar"

    def test_create_generates_id(self, pipeline):
        feature = pipeline.create_feature(title="  Untitled  ")
        assert feature.id
        assert feature.title == "Untitled"
        assert feature.status == FeatureStatus.DRAFT


class TestRefusals:
    def test_unknown_verdict_before_any_read(self, pipeline):
        with pytest.raises(UnknownVerdict):
            pipeline.advance_feature("does-not-exist", "maybe")

    def test_missing_feature(self, pipeline):
        with pytest.raises(FeatureNotFound):
            pipeline.advance_feature("does-not-exist", "approve")

    def test_gated_entry_refuses_ungated_phase(self, pipeline, store, schedule):
        _seed(store, schedule, "build")
        with pytest.raises(NoGateAtPhase):
            pipeline.advance_feature("feat-1", "approve")

    def test_worker_entry_refuses_gated_phase(self, pipeline, store, schedule):
        _seed(store, schedule, "ship")
        with pytest.raises(GateRequiresApproval):
            pipeline.report_worker_verdict("feat-1", "approve")

    def test_auto_advance_refuses_waiting_gate(self, pipeline, store, schedule):
        _seed(store, schedule, "spec")
        with pytest.raises(GateRequiresApproval):
            pipeline.auto_advance("feat-1")

    def test_auto_advance_refuses_gate_reached_by_revise(self, pipeline, store, schedule):
        _seed(store, schedule, "design")
        feature = pipeline.report_worker_verdict("feat-1", "revise")
        assert feature.current_phase == "spec"
        assert feature.needs_attention is False
        with pytest.raises(GateRequiresApproval):
            pipeline.auto_advance("feat-1")
        assert store.get("feat-1").current_phase == "spec"
        assert pipeline.advance_feature("feat-1", "approve").current_phase == "design"

    def test_acknowledged_escalation_at_gate_still_needs_verdict(self, pipeline, store, schedule):
        _seed(store, schedule, "spec", revision_count=3, needs_attention=True,
              attention_type=AttentionType.ERROR)
        pipeline.acknowledge_escalation("feat-1")
        with pytest.raises(GateRequiresApproval):
            pipeline.auto_advance("feat-1")
        assert store.get("feat-1").current_phase == "spec"

    def test_refused_transition_leaves_feature_unchanged(self, pipeline, store, schedule):
        before = _seed(store, schedule, "intake")
        with pytest.raises(CannotReviseFirstPhase):
            pipeline.report_worker_verdict("feat-1", "revise")
        after = store.get("feat-1")
        assert after == before
        assert after.transition_log == []

    def test_dependency_error_propagates(self, schedule):
        pipeline = FeaturePipeline(store=UnreachableStore(), schedule=schedule)
        with pytest.raises(DependencyError):
            pipeline.auto_advance("feat-1")


class TestEscalation:
    def test_third_revise_escalates_without_moving(self, pipeline, store, schedule):
        _seed(store, schedule, "qa")
        pipeline.report_worker_verdict("feat-1", "revise")   # qa -> build
        pipeline.report_worker_verdict("feat-1", "revise")   # build -> design
        feature = pipeline.report_worker_verdict("feat-1", "revise")
        assert feature.revision_count == 3
        assert feature.current_phase == "design"
        assert feature.needs_attention is True
        assert feature.attention_type == AttentionType.ERROR
        with pytest.raises(GateRequiresApproval):
            pipeline.report_worker_verdict("feat-1", "approve")

    def test_acknowledge_then_resume(self, pipeline, store, schedule):
        _seed(store, schedule, "design", revision_count=3, needs_attention=True,
              attention_type=AttentionType.ERROR)
        with pytest.raises(GateRequiresApproval):
            pipeline.auto_advance("feat-1")
        pipeline.acknowledge_escalation("feat-1", "spec clarified")
        feature = pipeline.auto_advance("feat-1")
        assert feature.current_phase == "build"
        assert feature.needs_attention is False
        assert feature.revision_count == 3


class TestPublishing:
    def test_activity_event_per_transition(self, pipeline, store, schedule, sink):
        _seed(store, schedule, "spec")
        pipeline.advance_feature("feat-1", "approve", "looks good")
        assert len(sink.events) == 1
        feature_id, event = sink.events[0]
        assert feature_id == "feat-1"
        assert event.event_type == "handoff"
        assert event.step_id == "design"
        assert event.metadata["verdict"] == "approve"
        assert event.metadata["notes"] == "looks good"

    def test_worker_notified_on_change(self, pipeline, store, schedule, notifier):
        _seed(store, schedule, "build")
        pipeline.report_worker_verdict("feat-1", "approve")
        assert notifier.assignments == [("feat-1", "HBx_IN6", "qa")]

    def test_worker_not_notified_on_escalation(self, pipeline, store, schedule, notifier):
        _seed(store, schedule, "build", revision_count=2)
        pipeline.report_worker_verdict("feat-1", "revise")
        assert notifier.assignments == []

    def test_sink_failure_does_not_fail_transition(self, store, schedule, caplog):
        pipeline = FeaturePipeline(
            store=store, schedule=schedule, recorder=AuditRecorder([ExplodingSink()]),
        )
        _seed(store, schedule, "build")
        with caplog.at_level(logging.WARNING, logger="featureflow.audit.recorder"):
            feature = pipeline.report_worker_verdict("feat-1", "approve")
        assert feature.current_phase == "qa"
        assert store.get("feat-1").current_phase == "qa"
        assert "Activity delivery failed" in caplog.text


class TestConcurrency:
    def _race(self, pipeline, parties=2):
        outcomes: list = []
        lock = threading.Lock()

        def worker():
            try:
                result = pipeline.report_worker_verdict("feat-1", "approve")
            except ConflictError as exc:
                result = exc
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(parties)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        return outcomes

    def test_same_snapshot_one_wins_one_conflicts(self, schedule):
        store = RacingStore(parties=2)
        pipeline = FeaturePipeline(store=store, schedule=schedule, max_retries=0)
        _seed(store, schedule, "design")

        outcomes = self._race(pipeline)

        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        successes = [o for o in outcomes if not isinstance(o, ConflictError)]
        assert len(conflicts) == 1
        assert len(successes) == 1
        stored = store.get("feat-1")
        assert stored.current_phase == "build"
        assert len(stored.transition_log) == 1

    def test_retry_recomputes_from_fresh_read(self, schedule):
        store = RacingStore(parties=2)
        pipeline = FeaturePipeline(store=store, schedule=schedule, max_retries=3)
        _seed(store, schedule, "design")

        outcomes = self._race(pipeline)

        assert not any(isinstance(o, ConflictError) for o in outcomes)
        assert sorted(o.current_phase for o in outcomes) == ["build", "qa"]
        stored = store.get("feat-1")
        assert stored.current_phase == "qa"
        assert [r.phase for r in stored.transition_log] == ["design", "build"]

    def test_stale_phase_is_not_reused(self, schedule):
        store = InterleavingStore()
        pipeline = FeaturePipeline(store=store, schedule=schedule)
        seeded = _seed(store, schedule, "build")

        def cancel_concurrently():
            cancelled = seeded.model_copy(update={"status": FeatureStatus.CANCELLED})
            store.write_if_unchanged("feat-1", seeded.version, cancelled)

        store.interloper = cancel_concurrently
        with pytest.raises(AlreadyTerminal):
            pipeline.report_worker_verdict("feat-1", "approve")
        assert store.reads == 2
        assert store.get("feat-1").status == FeatureStatus.CANCELLED

    def test_gives_up_after_bounded_retries(self, schedule):
        store = AlwaysConflictStore()
        pipeline = FeaturePipeline(store=store, schedule=schedule, max_retries=2)
        _seed(store, schedule, "build")
        with pytest.raises(ConflictError):
            pipeline.report_worker_verdict("feat-1", "approve")
        assert store.writes == 3
