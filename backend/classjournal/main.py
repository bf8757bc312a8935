"""
ClassJournal Backend - FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   `create_app()` wires middleware, exception handlers, and routers;
       `lifespan` handles startup checks and shutdown cleanup.
Who:   uvicorn (`uvicorn classjournal.main:app`) or the `classjournal`
       console script, which calls `run()`.

Application Architecture:
    ┌────────────────────────────────────────────────────────┐
    │                      FastAPI App                       │
    │                                                        │
    │  Middleware:  Request ID → Logging → GZip → CORS       │
    │                                                        │
    │  Routes:      /api/user/*    /api/journal/*            │
    │               /api/files/*   /health    /api-docs      │
    │                                                        │
    │  Errors:      ClassJournalError → status from class    │
    │               RequestValidationError → 400             │
    │               anything else → 500                      │
    └────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Create the storage directory
    4. Optionally create tables (DB_CREATE_ALL)

    Shutdown:
    1. Dispose database engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from classjournal import __version__
from classjournal.config import settings
from classjournal.database import create_all, dispose_engine
from classjournal.exceptions import AuthenticationError, ClassJournalError
from classjournal.middleware.logging import RequestLoggingMiddleware
from classjournal.middleware.request_id import RequestIDMiddleware, request_id_var
from classjournal.routes import files, health, journal, user

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # uvicorn's access log duplicates classjournal.access
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("ClassJournal Backend %s starting up (env=%s)", __version__, settings.app_env)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so /health can report; the operator sees this at boot
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    if settings.db_create_all:
        await create_all()
        logger.info("Database tables created from ORM metadata")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.port)
    logger.info("API docs: http://%s:%d/api-docs", settings.backend_host, settings.port)
    logger.info("=" * 60)

    yield

    logger.info("ClassJournal Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def _error_body(message: str, error: str, rid: str, details: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "error": error,
        "request_id": rid,
    }
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to `{success: false, message, error, details?, request_id}`.

    Handler hierarchy:
        ClassJournalError 4xx   → its status, message, and context as details
        ClassJournalError 5xx   → its status, generic body; context logged only
        RequestValidationError  → 400 validation_error with field errors
        Exception (fallback)    → 500 internal_server_error
    """

    @app.exception_handler(ClassJournalError)
    async def handle_app_error(request: Request, exc: ClassJournalError):
        rid = _request_id(request)
        status = exc.status_code

        if status >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                type(exc).__name__,
                exc.message,
                exc.context,
            )
            return JSONResponse(
                status_code=status,
                content=_error_body(exc.message, exc.error_code, rid),
            )

        logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(
            status_code=status,
            content=_error_body(exc.message, exc.error_code, rid, exc.context),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = _request_id(request)
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", rid, errors)
        missing = ", ".join(e["field"] for e in errors if e["field"])
        message = f"Invalid or missing fields: {missing}" if missing else "Invalid request"
        return JSONResponse(
            status_code=400,
            content=_error_body(message, "validation_error", rid, {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "An unexpected error occurred. Please try again or contact support.",
                "internal_server_error",
                rid,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="ClassJournal API",
        description=(
            "Journals written by teachers, tagged to students, and published on "
            "a schedule. Authenticate with `Authorization: Bearer <token>` from "
            "/api/user/login."
        ),
        version=__version__,
        docs_url="/api-docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(user.router)
    app.include_router(journal.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()


def run() -> None:
    """Entry point of the `classjournal` console script."""
    import uvicorn

    uvicorn.run(
        "classjournal.main:app",
        host=settings.backend_host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
