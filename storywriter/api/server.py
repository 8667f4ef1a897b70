"""
HTTP API - Failure events in, artifacts out

Endpoints:
    POST /api/events      FailureEvent JSON -> Artifact JSON
    GET  /_system/ping    Liveness probe
    GET  /metrics         Prometheus exposition

Validation errors map to 400; a PipelineFailure maps to 500.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from storywriter import __version__
from storywriter.agents.orchestrator import PipelineOrchestrator
from storywriter.config.settings import get_config
from storywriter.models.artifact import Artifact
from storywriter.models.event import FailureEvent
from storywriter.observability.metrics import PipelineMetrics
from storywriter.providers.factory import create_backend
from storywriter.utils.error_handling import PipelineFailure, classify_error

logger = logging.getLogger(__name__)

PING_MESSAGE = "story-writer is running"


def create_app(
    orchestrator: Optional[PipelineOrchestrator] = None,
    metrics: Optional[PipelineMetrics] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Pipeline to serve; built from get_config() at startup when omitted
        metrics: Metrics exposed on /metrics (the orchestrator's when omitted,
            otherwise a fresh registry)
    """
    if metrics is None:
        metrics = (orchestrator.metrics if orchestrator is not None else None) or PipelineMetrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[PipelineOrchestrator] = None
        if app.state.orchestrator is None:
            config = get_config()
            backend = create_backend(config.backend)
            owned = PipelineOrchestrator.from_config(config, backend, metrics=metrics)
            app.state.orchestrator = owned
            logger.info(f"Story writer API started | environment={config.environment} | backend={config.backend.type.value}")

        yield

        if owned is not None:
            owned.shutdown()
            app.state.orchestrator = None
            logger.info("Story writer API stopped")

    app = FastAPI(
        title="Story Writer",
        version=__version__,
        description="Turns test failures into bug reports, user stories and severity ratings",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.metrics = metrics

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
            for err in exc.errors()
        ]
        logger.warning(f"Rejected event: {details}")
        return JSONResponse(status_code=400, content={"error": "invalid failure event", "details": details})

    @app.exception_handler(PipelineFailure)
    async def pipeline_failure_handler(request: Request, exc: PipelineFailure):
        logger.error(f"Pipeline failed | stage={exc.stage} | category={classify_error(exc)}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc), "stage": exc.stage})

    @app.post("/api/events", response_model=Artifact)
    def process_event(event: FailureEvent, request: Request):
        """Run the agent pipeline for one failure event."""
        pipeline: Optional[PipelineOrchestrator] = request.app.state.orchestrator
        if pipeline is None:
            return JSONResponse(status_code=503, content={"error": "pipeline not available", "stage": None})

        logger.info(f"Received failure event | source={event.source.value} | test={event.test_name or '-'}")
        return pipeline.run_pipeline(event)

    @app.get("/_system/ping", response_class=PlainTextResponse)
    async def ping():
        return PING_MESSAGE

    @app.get("/metrics")
    async def export_metrics(request: Request):
        return Response(request.app.state.metrics.export(), media_type=CONTENT_TYPE_LATEST)

    return app
