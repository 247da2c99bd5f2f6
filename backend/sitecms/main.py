"""
SiteCMS Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn sitecms.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐             │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │             │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘             │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────────┐ ┌─────────────────┐ ┌───────────┐  │
    │  │ /api/<entity>/*  │ │ /api/servicepage│ │ /health   │  │
    │  └──────────────────┘ └─────────────────┘ └───────────┘  │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ NotFound→404 │ Upstream→500       │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Create the MongoDB client
    4. Build the blob client and store it on app.state

    Shutdown:
    1. Close the blob client (pooled HTTP connections)
    2. Close the MongoDB client
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from sitecms import __version__
from sitecms.config import settings
from sitecms.database import connect_client, dispose_client
from sitecms.exceptions import (
    NotFoundError,
    SiteCMSError,
    UpstreamError,
    ValidationError,
)
from sitecms.middleware.logging import RequestLoggingMiddleware
from sitecms.middleware.request_id import RequestIDMiddleware, request_id_var
from sitecms.routes import files, health, resources, servicepages
from sitecms.services.blob_base import build_blob_client

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-operation chatter from drivers and HTTP clients
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:  logging → config check → MongoDB client → blob client.
    Shutdown: blob client → MongoDB client.
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("SiteCMS Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # The server keeps running so /health can report the problem
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    app.state.mongo_client = connect_client()
    app.state.blob_client = build_blob_client(settings)
    logger.info(
        "Blob backend: %s | Database: %s", settings.blob_backend, settings.mongo_db_name
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("SiteCMS Backend shutting down...")
    await app.state.blob_client.close()
    await dispose_client()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    # The middleware resets request_id_var before the catch-all handler runs
    return getattr(request.state, "request_id", "") or request_id_var.get("")


def _error_body(request: Request, code: str, message: str, details=None) -> dict:
    body = {"error": code, "message": message, "request_id": _request_id(request)}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and one response format.

    Handler hierarchy:
        ValidationError / InvalidPatchError → 400 Bad Request
        RequestValidationError (FastAPI)    → 400 Bad Request
        NotFoundError                       → 404 Not Found
        UpstreamError (store, blob host)    → 500, generic message
        SiteCMSError (base)                 → 500
        Exception (fallback)                → 500, logged with stack trace

    Upstream details are logged server-side only, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        """Client sent invalid input; tell them what's wrong."""
        logger.warning("[%s] Validation error: %s", _request_id(request), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", _request_id(request), errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                request, "validation_error", "Request validation failed", {"errors": errors}
            ),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body(request, "not_found", exc.message),
        )

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, exc: UpstreamError):
        """Store or blob host failed. Generic message, details logged."""
        logger.error(
            "[%s] %s: %s | Context: %s",
            _request_id(request),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "server_error", exc.message),
        )

    @app.exception_handler(SiteCMSError)
    async def handle_app_error(request: Request, exc: SiteCMSError):
        logger.error("[%s] Application error: %s", _request_id(request), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all. The stack trace is logged, never returned."""
        logger.error(
            "[%s] Unexpected error: %s",
            _request_id(request),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request,
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance. Tests build their own
    instance and override get_database / get_blob_client.
    """
    app = FastAPI(
        title="SiteCMS API",
        description=(
            "Content backend for the company website: boxes, items, testimonials, "
            "videos, carousel images, service requests, business leads, content "
            "sections and service pages. Uploads are forwarded to ImageKit."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    for router in resources.routers:
        app.include_router(router)
    app.include_router(servicepages.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sitecms.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
    )
