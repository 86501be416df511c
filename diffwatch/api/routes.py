"""Route handlers for the diffwatch API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from diffwatch.api.schemas import (
    ControllerStatus,
    HealthResponse,
    ReadinessResponse,
    StatusResponse,
)

router = APIRouter()
probes = APIRouter()


def _version() -> str:
    from diffwatch import __version__

    return __version__


@probes.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    """Liveness: the process is up and serving."""
    return HealthResponse(version=_version())


@probes.get("/readyz", response_model=ReadinessResponse)
async def readyz(request: Request) -> JSONResponse:
    """Readiness: 200 once every controller's informer has synced, else 503."""
    controllers: list[Any] = request.app.state.controllers
    pending = [c.name for c in controllers if not c.has_synced()]
    body = ReadinessResponse(ready=not pending, pending=pending)
    return JSONResponse(status_code=200 if not pending else 503, content=body.model_dump())


@probes.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition of every diffwatch collector."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Watch context and per-kind controller state."""
    context = request.app.state.context
    sink = request.app.state.sink
    controllers: list[Any] = request.app.state.controllers
    return StatusResponse(
        version=_version(),
        started_at=context.started_at.isoformat(),
        namespaces=sorted(context.namespaces),
        diff_ignore=list(context.diff_ignore),
        max_retries=context.max_retries,
        notification_channels=list(getattr(sink, "channel_names", [])),
        controllers=[
            ControllerStatus(
                kind=c.kind.kind,
                api_version=c.kind.api_version,
                synced=c.has_synced(),
                running=c.running,
                queue_depth=len(c.queue),
            )
            for c in controllers
        ],
    )
