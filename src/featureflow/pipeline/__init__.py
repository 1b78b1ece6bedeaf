"""Feature pipeline state machine: engine, gate guard, and service."""

from __future__ import annotations

from featureflow.pipeline.engine import ESCALATION_THRESHOLD, Transition, advance, parse_verdict
from featureflow.pipeline.service import FeaturePipeline

__all__ = ["ESCALATION_THRESHOLD", "FeaturePipeline", "Transition", "advance", "parse_verdict"]
