"""Feature pipeline endpoints.

Handlers are plain ``def`` so FastAPI runs the blocking store calls in its
threadpool.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from featureflow.models.feature import Feature
from featureflow.pipeline.service import FeaturePipeline

router = APIRouter(tags=["features"])


class CreateFeatureRequest(BaseModel):
    id: Optional[str] = None
    title: str = ""


class VerdictRequest(BaseModel):
    verdict: str
    notes: Optional[str] = None


class NotesRequest(BaseModel):
    notes: Optional[str] = None


def _pipeline(request: Request) -> FeaturePipeline:
    return request.app.state.pipeline


def _respond(feature: Feature) -> dict[str, Any]:
    return {"feature": feature.to_item()}


def _notes(body: Optional[NotesRequest]) -> Optional[str]:
    return body.notes if body is not None else None


@router.post("", status_code=status.HTTP_201_CREATED)
def create_feature(body: CreateFeatureRequest, request: Request) -> dict:
    """Create a draft feature outside the pipeline."""
    return _respond(_pipeline(request).create_feature(body.id, body.title))


@router.get("/{feature_id}")
def get_feature(feature_id: str, request: Request) -> dict:
    return _respond(_pipeline(request).get_feature(feature_id))


@router.post("/{feature_id}/submit")
def submit_feature(feature_id: str, request: Request, body: Optional[NotesRequest] = None) -> dict:
    """Enter a draft feature into the pipeline at the first phase."""
    return _respond(_pipeline(request).submit_feature(feature_id, _notes(body)))


@router.post("/{feature_id}/review-verdict")
def review_verdict(feature_id: str, body: VerdictRequest, request: Request) -> dict:
    """Human approve/revise/reject at a gated phase."""
    return _respond(_pipeline(request).advance_feature(feature_id, body.verdict, body.notes))


@router.post("/{feature_id}/advance")
def worker_verdict(feature_id: str, body: VerdictRequest, request: Request) -> dict:
    """Verdict reported by the worker that owns a non-gated phase."""
    return _respond(_pipeline(request).report_worker_verdict(feature_id, body.verdict, body.notes))


@router.post("/{feature_id}/auto-advance")
def auto_advance(feature_id: str, request: Request, body: Optional[NotesRequest] = None) -> dict:
    """Resume the pipeline with an approve that needs no human verdict."""
    return _respond(_pipeline(request).auto_advance(feature_id, _notes(body)))


@router.post("/{feature_id}/acknowledge")
def acknowledge_escalation(
    feature_id: str, request: Request, body: Optional[NotesRequest] = None
) -> dict:
    """Clear a revision escalation so the pipeline can resume."""
    return _respond(_pipeline(request).acknowledge_escalation(feature_id, _notes(body)))
