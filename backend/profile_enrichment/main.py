"""Profile Enrichment API - Main FastAPI Application."""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from profile_enrichment import __version__
from profile_enrichment.api.routes import enrichment, health
from profile_enrichment.core.exceptions import EnrichmentError, sanitize_error
from profile_enrichment.middleware import RequestIDMiddleware


# Configure logging: JSON for production, text for dev
def _configure_logging() -> None:
    """Set up logging based on LOG_FORMAT env var.

    json: Structured JSON via python-json-logger.
    text: Human-readable format (for local development).
    """
    log_format = os.environ.get("LOG_FORMAT", "text").lower()
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Remove existing handlers to avoid duplicate output
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if log_format == "json":
        from pythonjsonlogger.json import JsonFormatter

        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "service",
            },
            static_fields={"app": "profile-enrichment"},
        )
        handler.setFormatter(formatter)
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)


_configure_logging()
logger = logging.getLogger(__name__)


def get_cors_origins() -> list[str]:
    """Get CORS origins from settings or use defaults."""
    try:
        from profile_enrichment.core.config import get_settings

        return get_settings().cors_origins_list
    except Exception:
        logger.warning("Settings unavailable, using default CORS origins")
        return [
            "http://localhost:3000",
            "http://localhost:5173",
        ]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> Any:
    """Application lifespan handler for startup and shutdown events."""
    from profile_enrichment.core.config import get_settings

    settings = get_settings()
    logger.info("Starting Profile Enrichment API...")
    settings.validate_startup()
    logger.info("Upstream enrichment backend: %s", settings.ENRICHMENT_BACKEND_URL)
    yield
    logger.info("Shutting down Profile Enrichment API...")


app = FastAPI(
    title="Profile Enrichment API",
    description="Progressive creator profile enrichment over Server-Sent Events",
    version=__version__,
    lifespan=lifespan,
)

CORS_ORIGINS = get_cors_origins()
logger.info("CORS allowed origins: %s", CORS_ORIGINS)

app.add_middleware(RequestIDMiddleware)

# CORS Configuration, added last so it's outermost (handles preflight first)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(enrichment.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1")


@app.get("/health", tags=["system"])
async def root_health_check() -> dict[str, str]:
    """Root health check endpoint.

    Lightweight check, returns 200 if the process is running.
    For dependency-aware checks, use /api/v1/health.
    """
    return {"status": "healthy"}


@app.exception_handler(EnrichmentError)
async def enrichment_exception_handler(request: Request, exc: EnrichmentError) -> JSONResponse:
    """Render relay errors as ``{"error": message}``."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    logger.warning(
        "Enrichment exception occurred",
        extra={
            "code": exc.code,
            "status_code": exc.status_code,
            "request_id": request_id,
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler that never leaks internals to the caller."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": sanitize_error(exc)})
