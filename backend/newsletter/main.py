"""
Newsletter Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routes, and
       places the Database and EmailTransport on `app.state`.
Who:   uvicorn (`uvicorn newsletter.main:app`) and the test suite, which
       passes its own isolated database and a fake transport.

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate outbound mail configuration (log, don't abort)
    3. Connect the database engine
    Shutdown:
    1. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from newsletter import __version__
from newsletter.config import settings
from newsletter.database import Database
from newsletter.exceptions import (
    NewsletterError,
    NotFoundError,
    StoreUnavailableError,
    TransportError,
    ValidationError,
)
from newsletter.middleware.logging import RequestLoggingMiddleware
from newsletter.middleware.request_id import RequestIDMiddleware, request_id_var
from newsletter.routes import health, newsletter
from newsletter.services.smtp_transport import SMTPTransport
from newsletter.services.transport_base import EmailTransport

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure root logging once at startup; stdout is captured by the container."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    database: Database = app.state.database

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Subscriptions still work; fan-outs will fail until this is fixed
        logger.error("%s", e)

    await database.connect()
    logger.info(
        "Newsletter backend %s listening on %s:%d",
        __version__,
        settings.backend_host,
        settings.backend_port,
    )
    try:
        yield
    finally:
        await database.dispose()
        logger.info("Newsletter backend stopped")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    """Uniform error body; every failure carries the request id for log lookup."""
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions that escape the services to JSON error bodies.

    Expected outcomes (invalid email, not found, already unsubscribed) are
    envelopes and never reach these handlers. What does:
        ValidationError        → 400 (bad status / sort parameters)
        NotFoundError          → 404
        StoreUnavailableError  → 500, generic message (driver details logged only)
        TransportError         → 503
        NewsletterError        → 500
        Exception              → 500
    """

    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Rejected parameters: %s", request_id_var.get(""), exc.message)
        return _error_body(400, exc.code, exc.message, details=exc.context)

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError):
        return _error_body(404, exc.code, exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def on_store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error(
            "[%s] Store unavailable during %s: %s",
            request_id_var.get(""),
            exc.context.get("operation", "unknown"),
            exc.context,
        )
        return _error_body(500, "server_error", "Something went wrong. Please try again later.")

    @app.exception_handler(TransportError)
    async def on_transport_error(request: Request, exc: TransportError):
        logger.error("[%s] Transport failure: %s", request_id_var.get(""), exc.context)
        return _error_body(503, exc.code, exc.message)

    @app.exception_handler(NewsletterError)
    async def on_newsletter_error(request: Request, exc: NewsletterError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error_body(500, exc.code, exc.message)

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        logger.exception("[%s] Unhandled error on %s", request_id_var.get(""), request.url.path)
        return _error_body(500, "internal_server_error", "An unexpected error occurred.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    transport: Optional[EmailTransport] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        database:  store handle; defaults to one built from settings.database_url
        transport: outbound mail; defaults to SMTPTransport from settings
    """
    app = FastAPI(
        title="Newsletter API",
        description="Newsletter subscription ledger and content notification fan-out.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.database = database or Database()
    app.state.transport = transport or SMTPTransport()

    # Execution order is the reverse of registration: RequestID → Logging → GZip → CORS
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

    app.include_router(newsletter.router)
    app.include_router(health.router)

    return app


app = create_app()
