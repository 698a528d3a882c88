from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api import router
from datastore.telemetry import TelemetryUnavailableError
from logging_config import configure_logging
from services.analytics import build_default_analytics
from services.live import build_default_monitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Keep the live subscription open for the lifetime of the app."""
    monitor = build_default_monitor()
    monitor.start()
    logger.info("Live monitor subscribed", extra={"status": monitor.state.status.value})
    try:
        yield
    finally:
        monitor.stop()
        build_default_monitor.cache_clear()
        build_default_analytics.cache_clear()


async def telemetry_unavailable_handler(
    _request: Request, exc: TelemetryUnavailableError
) -> JSONResponse:
    logger.error("Telemetry source unavailable: %s", exc, extra={"reason": "unavailable"})
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": f"Telemetry source unavailable: {exc}"},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Living Condition Monitor",
        description="Living condition scoring and historical analytics for environmental sensors.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(TelemetryUnavailableError, telemetry_unavailable_handler)
    app.include_router(router)
    return app


app = create_app()
