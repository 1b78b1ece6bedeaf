"""Structured logging for featureflow.

Every record carries ``feature_id``, ``phase`` and ``verdict`` (``-`` when
unset) so text and JSON output line up across modules.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

CONTEXT_FIELDS = ("feature_id", "phase", "verdict")
EXTRA_FIELDS = (
    "to_phase",
    "status",
    "worker",
    "version",
    "attempt",
    "pending",
    "sink",
    "error",
    "error_type",
)

TEXT_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "feature=%(feature_id)s phase=%(phase)s verdict=%(verdict)s"
)


class FeatureContextFilter(logging.Filter):
    """Fills in missing feature context so formatters never hit AttributeError."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, "-")
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update({field: getattr(record, field, "-") for field in CONTEXT_FIELDS})
        data.update({field: getattr(record, field) for field in EXTRA_FIELDS if hasattr(record, field)})
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class _FeatureFlowHandler(logging.StreamHandler):
    """Marker type so repeated setup replaces only our own handler."""


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """Install the featureflow handler on the root logger.

    Handlers installed by anything else (uvicorn, pytest) are left alone.
    """
    handler = _FeatureFlowHandler()
    handler.addFilter(FeatureContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _FeatureFlowHandler)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logging.getLogger("featureflow")


def get_logger(name: str = "featureflow") -> logging.Logger:
    return logging.getLogger(name)


def log_extra(
    *,
    feature_id: Optional[str] = None,
    phase: Optional[str] = None,
    verdict: Optional[str] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build an ``extra`` dict, dropping None so the filter defaults apply."""
    payload = {"feature_id": feature_id, "phase": phase, **extra}
    if verdict is not None:
        payload["verdict"] = str(verdict)
    return {key: value for key, value in payload.items() if value is not None}
