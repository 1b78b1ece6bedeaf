"""Audit recorder: durable transition log plus best-effort activity feed."""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional

from featureflow.audit.events import event_for
from featureflow.core.logging import get_logger, log_extra
from featureflow.core.protocols import IActivitySink, IWorkerNotifier
from featureflow.models.feature import Feature, TransitionRecord

log = get_logger(__name__)


class AuditRecorder:
    """Appends transition records and fans them out to activity sinks.

    ``append`` is pure and its result goes into the store's conditional
    write, so the log can never diverge from the feature state. ``publish``
    runs after the write has committed and swallows every failure.

    Without an ``executor`` delivery runs inline with no time limit; that mode
    is for tests and local runs only. Deployed recorders come from
    ``threaded``, which waits at most ``timeout_seconds`` for delivery.
    """

    def __init__(
        self,
        sinks: Iterable[IActivitySink] = (),
        notifiers: Iterable[IWorkerNotifier] = (),
        *,
        timeout_seconds: float = 2.0,
        executor: Optional[Executor] = None,
    ) -> None:
        self._sinks = list(sinks)
        self._notifiers = list(notifiers)
        self._timeout = timeout_seconds
        self._executor = executor

    @classmethod
    def threaded(
        cls,
        sinks: Iterable[IActivitySink] = (),
        notifiers: Iterable[IWorkerNotifier] = (),
        *,
        timeout_seconds: float = 2.0,
        max_workers: int = 4,
    ) -> AuditRecorder:
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="featureflow-audit")
        return cls(sinks, notifiers, timeout_seconds=timeout_seconds, executor=executor)

    @staticmethod
    def append(feature: Feature, record: TransitionRecord) -> Feature:
        """Return ``feature`` with ``record`` appended to its transition log."""
        log_entries = list(feature.transition_log)
        if log_entries and record.timestamp < log_entries[-1].timestamp:
            record = record.model_copy(update={"timestamp": log_entries[-1].timestamp})
        log_entries.append(record)
        return feature.model_copy(update={"transition_log": log_entries})

    def publish(
        self,
        feature: Feature,
        record: TransitionRecord,
        previous_worker: Optional[str] = None,
    ) -> None:
        """Notify activity sinks and, on a worker change, worker notifiers."""
        try:
            event = event_for(feature, record)
        except Exception as exc:
            log.warning(
                "Activity event could not be built",
                extra=log_extra(
                    feature_id=feature.id,
                    phase=record.phase,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                ),
            )
            return
        deliveries: list[tuple[str, Callable[[], None]]] = [
            (type(sink).__name__, lambda sink=sink: sink.record(feature.id, event))
            for sink in self._sinks
        ]
        worker = feature.current_worker
        if worker is not None and worker != previous_worker and not feature.is_terminal:
            phase_id = feature.current_phase or ""
            deliveries.extend(
                (
                    type(notifier).__name__,
                    lambda notifier=notifier: notifier.worker_assigned(feature.id, worker, phase_id),
                )
                for notifier in self._notifiers
            )
        if not deliveries:
            return

        if self._executor is None:
            for name, deliver in deliveries:
                self._deliver(feature.id, name, deliver)
            return

        futures: list[Future] = [
            self._executor.submit(self._deliver, feature.id, name, deliver)
            for name, deliver in deliveries
        ]
        _, pending = wait(futures, timeout=self._timeout)
        if pending:
            log.warning(
                "Activity delivery still pending after timeout",
                extra=log_extra(feature_id=feature.id, pending=len(pending)),
            )

    @staticmethod
    def _deliver(feature_id: str, name: str, deliver: Callable[[], None]) -> None:
        try:
            deliver()
        except Exception as exc:
            log.warning(
                "Activity delivery failed",
                extra=log_extra(
                    feature_id=feature_id,
                    sink=name,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                ),
            )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        for channel in (*self._sinks, *self._notifiers):
            close = getattr(channel, "close", None)
            if close is not None:
                close()
