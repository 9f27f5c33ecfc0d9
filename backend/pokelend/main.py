"""
PokeLend Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan configures logging on startup and disposes the engine on
       shutdown.
Who:   uvicorn (`uvicorn pokelend.main:app`) and the route tests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Logging → GZip   │
    │                                                          │
    │  Routes:                                                 │
    │   POST /api/loans              POST /api/favorites/…     │
    │   PUT  /api/history/…/return   PUT  /api/history/return- │
    │   GET  /api/history[/active]   GET  /api/items|clans/…   │
    │   GET  /health                                           │
    │                                                          │
    │  Exception Handlers:                                     │
    │   Validation→400 · Auth→401 · NotFound→404 ·             │
    │   Conflict→409 · Internal→500 · anything else→500        │
    └──────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from pokelend import __version__
from pokelend.config import settings
from pokelend.database import dispose_engine
from pokelend.exceptions import (
    AuthError,
    ConflictError,
    InternalError,
    LendingError,
    NotFoundError,
    ValidationError,
)
from pokelend.middleware.logging import RequestLoggingMiddleware
from pokelend.middleware.rate_limit import RateLimitMiddleware
from pokelend.middleware.request_id import RequestIDMiddleware, request_id_var
from pokelend.routes import catalog, health, history, lending

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configures the root logger once, at startup.

    Format: 2026-01-15T12:00:00 [INFO] pokelend.services.coordinator: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("PokeLend Backend %s starting up...", __version__)

    # Keep serving (health checks report the problem) instead of exiting
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info(
        "Loan rules: %d-%dh, comments up to %d chars, %d storage attempt(s)",
        settings.loan_min_hours,
        settings.loan_max_hours,
        settings.comment_max_length,
        settings.retry_max_attempts,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("PokeLend Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, exc: LendingError, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": exc.message,
            "details": details if details is not None else exc.context,
            "request_id": request_id_var.get(""),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps the lending exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError → 400 validation_error
        AuthError       → 401 invalid_credential
        NotFoundError   → 404 not_found
        ConflictError   → 409 conflict
        InternalError   → 500 server_error (generic message, context logged)
        LendingError    → 500 server_error
        Exception       → 500 internal_server_error

    Driver messages and stack traces are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        logger.warning("[%s] Credential rejected on %s", request_id_var.get(""), request.url.path)
        return _error_response(401, "invalid_credential", exc, details={})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.info("[%s] Conflict: %s", request_id_var.get(""), exc.message)
        return _error_response(409, "conflict", exc, details={"item_ids": exc.item_ids})

    @app.exception_handler(InternalError)
    async def handle_internal_error(request: Request, exc: InternalError):
        rid = request_id_var.get("")
        logger.error("[%s] Storage error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, "server_error", exc, details={})

    @app.exception_handler(LendingError)
    async def handle_lending_error(request: Request, exc: LendingError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled lending error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, "server_error", exc, details={})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="PokeLend API",
        description=(
            "Lending tracker for a shared Pokémon collection: reserve items, "
            "return them, and borrow whole favorite lists, with optimistic "
            "concurrency control on every item."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Executed in reverse order of addition: RateLimit runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(lending.router)
    app.include_router(history.router)
    app.include_router(catalog.router)
    app.include_router(health.router)

    return app


# uvicorn imports `pokelend.main:app`
app = create_app()
