"""FastAPI application factory.

Creates the application instance, registers middleware, the exception
handlers that map engine errors to HTTP status codes, and the route
routers.

The engine does not own users, projects, documents or transcriptions, so
the embedding platform builds the app with its own collaborator
implementations::

    from coding_analytics.api.main import create_app
    from coding_analytics.core.collaborators import Collaborators

    app = create_app(Collaborators(membership, documents, transcriptions, users))

and serves it with Uvicorn / Gunicorn as usual.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coding_analytics.config.settings import get_settings
from coding_analytics.core.collaborators import Collaborators
from coding_analytics.core.exceptions import (
    CodingAnalyticsError,
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from coding_analytics.core.logging_config import configure_logging, request_id_var

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: dict[type[CodingAnalyticsError], int] = {
    ConflictError: 409,
    NotFoundError: 404,
    InvalidOperationError: 422,
    InvalidArgumentError: 400,
    ForbiddenError: 403,
}


def status_for(exc: CodingAnalyticsError) -> int:
    """Return the HTTP status for an engine error (500 for unknown subclasses)."""
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(collaborators: Collaborators) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        collaborators: Membership, document, transcription and user services
            the routes resolve through ``get_collaborators``.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Qualitative coding of documents and transcriptions: a hierarchical "
            "code taxonomy, span annotations and aggregate analytics."
        ),
        version="0.1.0",
        debug=settings.debug,
        redirect_slashes=False,
    )
    application.state.collaborators = collaborators

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every request with its status and duration.

        Binds a unique ``request_id`` to the structlog context so that every
        log line emitted while serving the request can be correlated.
        """
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn("request_complete", status_code=status_code, elapsed_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Exception handlers ------------------------------------------------

    @application.exception_handler(CodingAnalyticsError)
    async def engine_error_handler(
        request: Request, exc: CodingAnalyticsError
    ) -> JSONResponse:
        status_code = status_for(exc)
        logger.info(
            "engine_error",
            error=type(exc).__name__,
            status_code=status_code,
            detail=str(exc),
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    # ---- Routers -----------------------------------------------------------

    from coding_analytics.api.routes import analysis, annotations, codes  # noqa: PLC0415

    application.include_router(codes.router, tags=["codes"])
    application.include_router(annotations.router, tags=["annotations"])
    application.include_router(
        analysis.router,
        prefix="/projects/{project_id}/analysis",
        tags=["analysis"],
    )

    # ---- Health endpoint ---------------------------------------------------

    @application.get("/health", tags=["system"])
    async def health() -> JSONResponse:
        """Return a minimal process-level liveness status."""
        return JSONResponse({"status": "ok"})

    logger.info(
        "application_created",
        app_name=settings.app_name,
        debug=settings.debug,
        log_level=settings.log_level,
    )
    return application
