"""Type aliases used across featureflow."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
FeatureId = str
PhaseId = str
WorkerId = str
Version = int
