"""
RepairDesk Backend - FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn repairdesk.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌────────────┐  │
    │  │ Rate Limit │→│ Req ID   │→│ Logging │→│ GZip, CORS │  │
    │  └────────────┘ └──────────┘ └─────────┘ └────────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  technician-applications │ admin/technicians │ auth      │
    │  admin/clients │ notifications │ device-tokens           │
    │  service-requests │ documents │ health                   │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400 │ Auth→401/403 │ NotFound→404 │ 409 │ 500│
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Set up logging
    2. Validate configuration (warnings only)
    3. Wait for the database (tenacity retry)
    4. Create tables when AUTO_CREATE_TABLES is on
    5. Seed the default admin
    6. Build the notification dispatcher from the push config
    7. Build the mailer from the SMTP settings

    Shutdown:
    1. Dispose database engine (close all connections)
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
from starlette.exceptions import HTTPException as StarletteHTTPException

from repairdesk import __version__
from repairdesk.config import EmailConfig, PushConfig, settings
from repairdesk.database import (
    async_session_factory,
    create_tables,
    dispose_engine,
    wait_for_database,
)
from repairdesk.exceptions import (
    AuthenticationError,
    DatabaseError,
    DuplicateEmailError,
    FileStorageError,
    InvalidStateTransition,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
    RepairDeskError,
    ValidationError,
)
from repairdesk.middleware.logging import RequestLoggingMiddleware
from repairdesk.middleware.rate_limit import RateLimitMiddleware
from repairdesk.middleware.request_id import RequestIDMiddleware, request_id_var
from repairdesk.routes import (
    applications,
    auth,
    clients,
    device_tokens,
    documents,
    health,
    notifications,
    service_requests,
    technicians,
)
from repairdesk.services.auth_service import auth_service
from repairdesk.services.email_service import Mailer
from repairdesk.services.notification_dispatcher import NotificationDispatcher
from repairdesk.services.push_transport import build_push_transport

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Third-party libraries that log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_dispatcher(config: PushConfig) -> NotificationDispatcher:
    return NotificationDispatcher(config, transport=build_push_transport(config))


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("RepairDesk Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Development defaults are allowed; they are only reported
        logger.warning("%s", str(e))

    await wait_for_database()

    if settings.auto_create_tables:
        await create_tables()
        logger.info("Database tables ensured")

    async with async_session_factory() as session:
        await auth_service.seed_default_admin(session)

    app.state.dispatcher = build_dispatcher(settings.push_config())
    logger.info(
        "Push notifications: %s",
        "enabled" if app.state.dispatcher.push_enabled else "disabled",
    )
    app.state.mailer = Mailer(settings.email_config())
    logger.info("Email: %s", "enabled" if app.state.mailer.enabled else "disabled")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("RepairDesk Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details=None, headers=None) -> JSONResponse:
    content = {
        "success": False,
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the error envelope.

        ValidationError          → 400
        RequestValidationError   → 400 (malformed body / query)
        AuthenticationError      → 401
        PermissionDeniedError    → 403
        NotFoundError            → 404
        InvalidStateTransition   → 409
        DuplicateEmailError      → 409
        RateLimitExceededError   → 429
        FileStorageError         → 500
        DatabaseError            → 500
        RepairDeskError (base)   → 500
        Exception (fallback)     → 500

    Internal details (stack traces, SQL, file paths) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
            for e in exc.errors()
        ]
        first = errors[0] if errors else {"field": "body", "message": "invalid request"}
        return _error(
            400,
            "validation_error",
            f"{first['field']}: {first['message']}",
            {"errors": errors},
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error(
            401,
            "authentication_error",
            exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        return _error(403, "permission_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(InvalidStateTransition)
    async def handle_invalid_transition(request: Request, exc: InvalidStateTransition):
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return _error(409, "invalid_state_transition", exc.message, exc.context)

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(request: Request, exc: DuplicateEmailError):
        return _error(409, "duplicate_email", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(500, "server_error", exc.message)

    @app.exception_handler(RepairDeskError)
    async def handle_repairdesk_error(request: Request, exc: RepairDeskError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, "http_error", str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers."""
    app = FastAPI(
        title="RepairDesk API",
        description=(
            "Backend of a computer-repair shop: technician applications and their "
            "review workflow, technicians, service requests and notifications."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Both replaced in lifespan by the ones built from settings
    app.state.dispatcher = NotificationDispatcher(PushConfig.disabled())
    app.state.mailer = Mailer(EmailConfig.disabled())

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: RateLimit → RequestID → Logging → GZip → CORS
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

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(applications.router)
    app.include_router(technicians.router)
    app.include_router(clients.router)
    app.include_router(notifications.router)
    app.include_router(device_tokens.router)
    app.include_router(auth.router)
    app.include_router(service_requests.router)
    app.include_router(documents.router)
    app.include_router(health.router)

    return app


app = create_app()
