"""
FastAPI application entry point for the PowerTrack API.

Provides the root health endpoint, registers the routers and maps domain
errors to HTTP responses. Settings are loaded at startup for validation; the
periodic report scheduler is started with the app when enabled.

CHANGELOG:
- 2026-04-22: Start report scheduler from lifespan (STORY-022)
- 2026-04-21: Register reports router (STORY-021)
- 2026-04-08: Register consumer router (STORY-009)
- 2026-04-06: Register retailer router, map domain errors (STORY-006)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from powertrack.api.consumer import router as consumer_router
from powertrack.api.health import router as health_router
from powertrack.api.reports import router as reports_router
from powertrack.api.retailer import router as retailer_router
from powertrack.config import get_settings
from powertrack.db.session import dispose_engine
from powertrack.errors import PowerTrackError
from powertrack.tasks.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: settings validation, scheduler, engine disposal."""
    settings = get_settings()
    app.state.settings = settings

    if settings.periodic_reports_enabled:
        start_scheduler()

    logger.info("Settings validated, PowerTrack API ready")
    yield
    logger.info("PowerTrack API shutting down")

    stop_scheduler()
    await dispose_engine()


app = FastAPI(
    title="PowerTrack API",
    description="Grid telemetry analytics for retailers and consumers.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(PowerTrackError)
async def handle_domain_error(request: Request, exc: PowerTrackError) -> JSONResponse:
    """Map domain errors to ``{"detail": message}`` with their status code."""
    logger.info(
        "%s on %s: %s", type(exc).__name__, request.url.path, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health_router)
app.include_router(retailer_router)
app.include_router(reports_router)
app.include_router(consumer_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint."""
    return {"status": "ok"}
