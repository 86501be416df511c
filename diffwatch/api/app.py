"""FastAPI application factory for diffwatch.

Usage::

    from diffwatch.api.app import create_app

    app = create_app(context=context, controllers=controllers, sink=sink)

The factory is designed for use by both the production bootstrap
(``diffwatch.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from diffwatch.api.routes import probes, router
from diffwatch.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    context: Any,
    controllers: list[Any] | None = None,
    sink: Any = None,
) -> FastAPI:
    """Create and configure the diffwatch FastAPI application.

    Args:
        context:     WatchContext shared by the controllers.
        controllers: ResourceController instances to report on.  The list is
                     read on every request, so controllers appended after
                     the app is built are picked up.
        sink:        Notification sink, reported for its channel names.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from diffwatch import __version__

    app = FastAPI(
        title="diffwatch",
        summary="Kubernetes change watcher",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    # Dependencies live in app.state so handlers need no module globals.
    app.state.context = context
    app.state.controllers = controllers if controllers is not None else []
    app.state.sink = sink

    app.include_router(probes)
    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
