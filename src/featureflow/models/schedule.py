"""Static pipeline schedule: ordered phases plus the phase -> status table.

The schedule is data, loaded from JSON, so the pipeline shape can change
without touching the transition engine. Order is the only relation between
phases: the engine steps forward one phase or back one phase.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, PrivateAttr, model_validator
from pydantic.alias_generators import to_camel

from featureflow.core.exceptions import InvalidSchedule, UnknownPhase
from featureflow.models.feature import TERMINAL_STATUSES, FeatureStatus

DEFAULT_SCHEDULE_PATH = Path(__file__).resolve().parent.parent / "config" / "default_schedule.json"


class Phase(BaseModel):
    """A single phase in the pipeline."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    worker_id: str
    label: str = ""
    human_gate: bool = False
    description: str = ""


class Schedule(BaseModel):
    """Ordered phases and the many-to-one phase -> status mapping."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    phases: tuple[Phase, ...]
    status_map: dict[str, FeatureStatus]

    _index: dict[str, int] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_consistency(self) -> Schedule:
        if not self.phases:
            raise ValueError("schedule must define at least one phase")
        index: dict[str, int] = {}
        for position, phase in enumerate(self.phases):
            if phase.id in index:
                raise ValueError(f"duplicate phase id {phase.id!r}")
            index[phase.id] = position
        missing = [pid for pid in index if pid not in self.status_map]
        if missing:
            raise ValueError(f"phases without a status mapping: {missing}")
        extra = [pid for pid in self.status_map if pid not in index]
        if extra:
            raise ValueError(f"status mapping for unknown phases: {extra}")
        terminal = [pid for pid, status in self.status_map.items() if status in TERMINAL_STATUSES]
        if terminal:
            raise ValueError(f"phases mapped to a terminal status: {terminal}")
        self._index = index
        return self

    # ---- construction ----

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schedule:
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            raise InvalidSchedule(f"Invalid schedule: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path) -> Schedule:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidSchedule(f"Cannot load schedule from {str(path)!r}: {exc}") from exc
        return cls.from_dict(data)

    # ---- lookups ----

    @property
    def phase_ids(self) -> list[str]:
        return [phase.id for phase in self.phases]

    @property
    def first(self) -> Phase:
        return self.phases[0]

    @property
    def last(self) -> Phase:
        return self.phases[-1]

    def __contains__(self, phase_id: object) -> bool:
        return phase_id in self._index

    def _position(self, phase_id: str) -> int:
        try:
            return self._index[phase_id]
        except (KeyError, TypeError):
            raise UnknownPhase(phase_id) from None

    def get(self, phase_id: str) -> Phase:
        return self.phases[self._position(phase_id)]

    def next_phase(self, phase_id: str) -> Optional[Phase]:
        """Phase after ``phase_id``, or None at the last phase."""
        position = self._position(phase_id)
        if position == len(self.phases) - 1:
            return None
        return self.phases[position + 1]

    def prev_phase(self, phase_id: str) -> Optional[Phase]:
        """Phase before ``phase_id``, or None at the first phase."""
        position = self._position(phase_id)
        if position == 0:
            return None
        return self.phases[position - 1]

    def status_for(self, phase_id: str) -> FeatureStatus:
        self._position(phase_id)
        return self.status_map[phase_id]


def load_schedule(path: str | Path | None = None) -> Schedule:
    """Load a schedule from ``path``, or the packaged default."""
    return Schedule.from_file(path or DEFAULT_SCHEDULE_PATH)
