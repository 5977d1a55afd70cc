"""
FastAPI application factory for the DSPR dashboard.

One Dashboard (report client, report store and module services) is built in
the lifespan and shared by every router through app.state.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from dspr import __version__
from dspr.config import get_settings
from dspr.connectors.report_client import ReportClientError
from dspr.routers import daily, daily_by_date, dsqr, hourly, reports, system, weekly
from dspr.services.dashboard import Dashboard
from dspr.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

API_PREFIX = "/api/v1"

# (router, path, tag)
ROUTERS = [
    (reports.router, "/reports", "Reports"),
    (daily.router, "/daily", "Daily"),
    (weekly.router, "/weekly", "Weekly"),
    (hourly.router, "/hourly", "Hourly"),
    (dsqr.router, "/dsqr", "DSQR"),
    (daily_by_date.router, "/daily-by-date", "Daily By Date"),
    (system.router, "/system", "System"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the Dashboard on startup unless one was injected, and close its
    report client on shutdown.
    """
    settings = get_settings()
    logger.info(
        "application_startup",
        version=app.version,
        dev_mode=settings.dev_mode,
        api_base_url=settings.dspr_api_base_url,
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )

    if getattr(app.state, "dashboard", None) is None:
        app.state.dashboard = Dashboard.from_settings(settings)

    yield

    await app.state.dashboard.aclose()
    logger.info("application_shutdown")


def _error_response(request: Request, status_code: int, error: object) -> JSONResponse:
    request_id = structlog.contextvars.get_contextvars().get("request_id")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "request_id": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions that escape a route onto the response envelope."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.warning("request_validation_failed", path=request.url.path, errors=exc.error_count())
        return _error_response(request, 422, exc.errors(include_url=False, include_context=False))

    @app.exception_handler(ReportClientError)
    async def report_client_error_handler(request: Request, exc: ReportClientError):
        api_error = exc.to_api_error()
        logger.warning("report_client_error", path=request.url.path, code=api_error.code)
        status_code = 422 if api_error.code == "VALIDATION_ERROR" else 502
        return _error_response(request, status_code, api_error.model_dump(mode="json"))


def create_app() -> FastAPI:
    """
    Application factory.
    Routers, CORS, request tracing and exception handlers.
    """
    settings = get_settings()

    app = FastAPI(
        title="DSPR Dashboard API",
        description="Store performance report: cached fetch, grading, alerts and trends",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms"],
    )

    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Bind a request ID, time the request and turn crashes into 500s."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()

        logger.info("request_started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal server error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response

    register_exception_handlers(app)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness probe; does not touch the report store."""
        return {"status": "healthy", "version": app.version, "dev_mode": settings.dev_mode}

    for router, path, tag in ROUTERS:
        app.include_router(router, prefix=f"{API_PREFIX}{path}", tags=[tag])

    logger.info("application_configured", routers_count=len(ROUTERS))
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dspr.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
