"""Feature, verdict, and transition log models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeatureStatus(StrEnum):
    DRAFT = "draft"
    PLANNING = "planning"
    DESIGN_REVIEW = "design_review"
    IN_PROGRESS = "in_progress"
    QA_REVIEW = "qa_review"
    REVIEW = "review"
    APPROVED = "approved"
    PR_SUBMITTED = "pr_submitted"
    DONE = "done"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({FeatureStatus.DONE, FeatureStatus.CANCELLED})


class Verdict(StrEnum):
    APPROVE = "approve"
    REVISE = "revise"
    REJECT = "reject"


class AttentionType(StrEnum):
    NONE = "none"
    REVIEW = "review"
    ERROR = "error"


class TransitionAction(StrEnum):
    SUBMIT = "submit"
    VERDICT = "verdict"
    ACKNOWLEDGE = "acknowledge"


class TransitionRecord(BaseModel):
    """One immutable entry in a feature's transition log."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    phase: Optional[str] = None  # phase the feature was in before the transition
    action: TransitionAction = TransitionAction.VERDICT
    verdict: Optional[Verdict] = None
    timestamp: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None
    revision_count: int = 0  # revision count at time of transition


class Feature(BaseModel):
    """A feature request and its position in the pipeline.

    ``version`` is the optimistic-concurrency token; stores bump it on every
    successful conditional write.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    current_phase: Optional[str] = None
    current_worker: Optional[str] = None
    status: FeatureStatus = FeatureStatus.DRAFT
    revision_count: int = Field(default=0, ge=0)
    needs_attention: bool = False
    attention_type: AttentionType = AttentionType.NONE
    transition_log: list[TransitionRecord] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_escalated(self) -> bool:
        return self.needs_attention and self.attention_type == AttentionType.ERROR

    def to_item(self) -> dict:
        """Serialize to the persisted (camelCase, JSON-safe) shape."""
        return self.model_dump(mode="json", by_alias=True)
