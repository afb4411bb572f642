"""FastAPI application for DETECT PAH Screening."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from detect_screening import __version__
from detect_screening.api import detect_router
from detect_screening.core.config import settings
from detect_screening.core.logging import configure_logging
from detect_screening.services.detect_calculator import get_detect_calculator_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: configure logging and create the calculator service so the
    first request does not pay for it.
    """
    startup_start = time.perf_counter()

    configure_logging(settings.log_level)

    service = get_detect_calculator_service()
    app.state.calculator_stats = service.get_stats()

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {total_startup_ms:.0f}ms")
    app.state.startup_time_ms = total_startup_ms

    yield


app = FastAPI(
    title=settings.app_name,
    description="Two-step DETECT screening score for pulmonary arterial hypertension in systemic sclerosis.",
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(detect_router)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness check)."""
    return {
        "status": "healthy",
        "service": "detect-pah-screening",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "DETECT PAH Screening API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
