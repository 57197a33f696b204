"""FastAPI application for PMTrack.

Routes validate request shape and delegate to the core; typed core errors
are mapped to HTTP status codes in one place.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from pmtrack import __version__
from pmtrack.core.logging import bind_context, clear_context, configure_logging
from pmtrack.db.connection import close_db
from pmtrack.errors import (
    ConcurrencyError,
    ConfigurationError,
    InactiveScheduleError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OutOfRangeError,
    PMTrackError,
    ValidationError,
)
from pmtrack.web.routes import health, schedules, work_orders

logger = structlog.get_logger()

ERROR_STATUS_CODES: dict[type[PMTrackError], int] = {
    ValidationError: 400,
    ConfigurationError: 400,
    InactiveScheduleError: 409,
    OutOfRangeError: 409,
    InvalidTransitionError: 409,
    InsufficientStockError: 409,
    ConcurrencyError: 409,
    NotFoundError: 404,
}


def status_code_for(exc: PMTrackError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        clear_context()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        bind_context(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()


def register_error_handlers(app: FastAPI) -> None:
    """Translate core errors and request-shape errors into JSON responses."""

    @app.exception_handler(PMTrackError)
    async def core_error_handler(request: Request, exc: PMTrackError):
        status_code = status_code_for(exc)
        logger.warning(
            "request_rejected",
            error=exc.kind,
            status_code=status_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": ValidationError.kind,
                "context": {"errors": [str(error) for error in exc.errors()]},
            },
        )


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="PMTrack",
        description="Preventive maintenance scheduling and work-order lifecycle API",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Prometheus Metrics
    Instrumentator().instrument(app).expose(app)

    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(schedules.router)
    app.include_router(work_orders.router)
    return app


app = create_app()
