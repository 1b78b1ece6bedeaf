"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from featureflow.api.routes import admin, features, health
from featureflow.audit import create_recorder
from featureflow.core.config import AppSettings
from featureflow.core.exceptions import (
    ConflictError,
    DependencyError,
    FeatureAlreadyExists,
    FeatureFlowError,
    FeatureNotFound,
    ScheduleError,
    StateError,
    ValidationError,
)
from featureflow.core.logging import get_logger, log_extra, setup_logging
from featureflow.models.schedule import load_schedule
from featureflow.persistence import create_feature_store
from featureflow.pipeline.service import FeaturePipeline

log = get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[FeatureFlowError], int]] = [
    (ValidationError, 400),
    (FeatureNotFound, 404),
    (FeatureAlreadyExists, 409),
    (StateError, 409),
    (ConflictError, 409),
    (ScheduleError, 500),
    (DependencyError, 503),
]


def status_for_error(exc: FeatureFlowError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def featureflow_error_handler(request: Request, exc: FeatureFlowError) -> JSONResponse:
    status_code = status_for_error(exc)
    if status_code >= 500:
        log.error(
            "Request failed",
            extra=log_extra(error=exc.message, error_type=exc.__class__.__name__),
        )
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def build_pipeline(settings: AppSettings) -> FeaturePipeline:
    """Wire schedule, store, and audit recorder from settings."""
    return FeaturePipeline(
        store=create_feature_store(settings),
        schedule=load_schedule(settings.pipeline.schedule_path),
        recorder=create_recorder(settings),
        max_retries=settings.pipeline.max_write_retries,
        escalation_threshold=settings.pipeline.escalation_threshold,
    )


def create_app(pipeline: Optional[FeaturePipeline] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Passing ``pipeline`` skips settings-based wiring (used by tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize and tear down application resources."""
        settings = AppSettings()
        setup_logging(settings.log_level, json_output=settings.log_json)
        app.state.settings = settings
        owned = pipeline is None
        app.state.pipeline = pipeline or build_pipeline(settings)
        yield
        if owned:
            app.state.pipeline.close()

    app = FastAPI(
        title="featureflow Feature Pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )
    if pipeline is not None:
        app.state.pipeline = pipeline
    app.add_exception_handler(FeatureFlowError, featureflow_error_handler)
    app.include_router(health.router)
    app.include_router(features.router, prefix="/features")
    app.include_router(admin.router, prefix="/admin")
    return app
