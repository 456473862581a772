"""FastAPI application for the ICD-10 Lookup Service."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import icd10_router
from app.core.config import settings
from app.services.icd10_lookup import CatalogLoadError, get_icd10_catalog, preload_icd10_catalog

logger = logging.getLogger(__name__)

SERVICE_NAME = "icd10-lookup"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Preloads the ICD-10 catalog so the first request does not pay the load.
    A failed preload is logged and retried lazily by the first request.
    """
    startup_start = time.perf_counter()

    try:
        catalog_stats = preload_icd10_catalog()
        logger.info(
            f"ICD-10 catalog preloaded: {catalog_stats['total_codes']} codes, "
            f"{catalog_stats['unique_keywords']} keywords in {catalog_stats['load_time_ms']}ms"
        )
    except CatalogLoadError as e:
        logger.warning(f"Failed to preload ICD-10 catalog: {e}")

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {total_startup_ms:.0f}ms")

    app.state.startup_time_ms = total_startup_ms

    yield


app = FastAPI(
    title=settings.app_name,
    description="Local ICD-10-CM catalog lookup, keyword search and validation of AI-suggested codes.",
    version=VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(icd10_router)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Reports whether the ICD-10 catalog is loaded, without loading it.
    """
    catalog_stats = get_icd10_catalog().get_stats(load=False)

    return {
        "status": "ready" if catalog_stats["loaded"] else "loading",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "startup_time_ms": getattr(app.state, "startup_time_ms", 0),
        "icd10_catalog": catalog_stats,
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "ICD-10 Lookup Service API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
