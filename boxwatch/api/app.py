"""FastAPI application factory for BoxWatch.

Usage::

    from boxwatch.api.app import create_app

    app = create_app(store=store, engine=engine, ingest=ingest, display_tz=UTC)

The factory is used by both the production bootstrap (``boxwatch.app``) and
the tests.
"""

from __future__ import annotations

from datetime import UTC, tzinfo

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from boxwatch.api.routes import router
from boxwatch.api.schemas import ErrorResponse
from boxwatch.errors import InvalidPayloadError, StoreUnavailableError
from boxwatch.status.engine import StatusEngine
from boxwatch.status.ingest import IngestService
from boxwatch.store.base import EventStore
from boxwatch.timecodec import TimestampParseError

_log = structlog.get_logger(component="api.app")


def create_app(
    store: EventStore,
    engine: StatusEngine,
    ingest: IngestService,
    display_tz: tzinfo = UTC,
) -> FastAPI:
    """Create and configure the BoxWatch FastAPI application.

    Args:
        store:      Event log, used directly by the stats endpoint.
        engine:     StatusEngine serving the live and history views.
        ingest:     IngestService handling heartbeats and service reports.
        display_tz: Zone used to render ``DD/MM/YYYY HH:MM:SS`` timestamps
                    and to interpret date-only ``from``/``to`` bounds.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from boxwatch import __version__

    app = FastAPI(
        title="BoxWatch",
        summary="Box heartbeat and service status monitor",
        version=__version__,
        description=(
            "BoxWatch records heartbeats and service-status reports from remote "
            "boxes and derives online/offline state, history and uptime."
        ),
    )

    # Store dependencies in app.state so route handlers can access them
    # without module-level globals.
    app.state.store = store
    app.state.engine = engine
    app.state.ingest = ingest
    app.state.display_tz = display_tz

    app.include_router(router)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to the error envelope."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            # locs is a tuple like ("body", "boxCode") or ("query", "type")
            field = ".".join(str(part) for part in locs[1:]) if len(locs) > 1 else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_PAYLOAD", detail=detail).model_dump(),
        )

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_handler(_request: Request, exc: InvalidPayloadError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_PAYLOAD", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(TimestampParseError)
    async def time_range_handler(_request: Request, exc: TimestampParseError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_TIME_RANGE", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        _log.error(
            "store_unavailable",
            path=str(request.url.path),
            operation=exc.operation,
            error=str(exc.cause),
        )
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="STORE_UNAVAILABLE",
                detail="The event store is temporarily unavailable.",
            ).model_dump(),
        )

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
