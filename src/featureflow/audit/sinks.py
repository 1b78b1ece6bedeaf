"""Activity sinks and worker notifiers.

Each sink raises NotificationError on failure; the audit recorder catches
and logs it so a failing channel never fails a transition.
"""

from __future__ import annotations

from typing import Optional

import httpx

from featureflow.audit.events import ActivityEvent
from featureflow.core.exceptions import NotificationError
from featureflow.core.logging import get_logger, log_extra

log = get_logger(__name__)


class LoggingActivitySink:
    """Writes activity events to the application log."""

    def record(self, feature_id: str, event: ActivityEvent) -> None:
        log.info(
            event.content,
            extra=log_extra(
                feature_id=feature_id,
                phase=event.step_id,
                verdict=event.metadata.get("verdict"),
                worker=event.agent_id,
            ),
        )


class HttpActivitySink:
    """POSTs activity events as JSON to a webhook."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 2.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._url = url
        self._client = client or httpx.Client(timeout=timeout_seconds, headers=headers)

    def record(self, feature_id: str, event: ActivityEvent) -> None:
        try:
            resp = self._client.post(self._url, json=event.model_dump(mode="json"))
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(
                f"Activity webhook failed for feature {feature_id}: {exc}"
            ) from exc

    def close(self) -> None:
        self._client.close()


class GatewayWorkerNotifier:
    """Tells the agent gateway which worker now owns a feature."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        model: str = "orchestrator",
        timeout_seconds: float = 2.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._model = model
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers=headers,
        )

    def worker_assigned(self, feature_id: str, worker_id: str, phase_id: str) -> None:
        payload = {
            "model": self._model,
            "messages": [
                {
                    "role": "user",
                    "content": (
                        f"Feature {feature_id} moved to phase {phase_id}. "
                        f"It has been assigned to {worker_id}. Please route accordingly."
                    ),
                }
            ],
        }
        try:
            resp = self._client.post("/v1/chat/completions", json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(
                f"Gateway notification failed for feature {feature_id}: {exc}"
            ) from exc

    def close(self) -> None:
        self._client.close()
