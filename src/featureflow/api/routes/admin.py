"""Admin endpoints for pipeline configuration."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["admin"])


@router.get("/schedule")
def get_schedule(request: Request) -> dict:
    """Return the ordered phases and the phase -> status mapping."""
    schedule = request.app.state.pipeline.schedule
    return schedule.model_dump(mode="json", by_alias=True)
