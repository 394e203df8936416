from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import asyncio

from app.config import settings

from app.routers import health, catalog, subscriptions, invoices, payments, discounts, reports, audit
from app.core.database import init_db, close_db
from app.core.structured_logging import APP_VERSION, setup_logging
from app.core.errors import SubledgerError
from app.core.errors.registry import error_registry
from app.core.errors.middleware import request_validation_handler, subledger_error_handler
from app.core.log_middleware import CorrelationMiddleware

# Initialize structured logging before any logger calls
setup_logging()

logger = logging.getLogger(__name__)

# API metadata
API_TITLE = "subledger API"
API_VERSION = APP_VERSION

API_DESCRIPTION = """
## subledger - Subscription Billing Core

Recurring plans, subscriptions, idempotent invoice generation, payments,
discount codes and live revenue reports.

### Conventions
- Money is sent and returned as decimal strings (`"2121.88"`).
- List endpoints accept `limit` (default 20, max 100) and `offset`.
- Send `X-Actor-Id` to attribute changes in the audit trail.
- Errors use one envelope: `{"error": {"code": "SUB-...", ...}}`.
"""

# Tag metadata for organizing endpoints
TAGS_METADATA = [
    {"name": "health", "description": "Liveness and database reachability. No side effects."},
    {"name": "catalog", "description": "Recurring plans, tax rates, products and their priced variants."},
    {"name": "subscriptions", "description": "Subscription lifecycle, lines, renewal and invoice generation."},
    {"name": "invoices", "description": "Invoice reads and status actions (confirm, cancel, restore)."},
    {"name": "payments", "description": "Payments recorded against CONFIRMED invoices."},
    {"name": "discounts", "description": "Discount codes, validation against a cart, and the usage ledger."},
    {"name": "reports", "description": "Live summaries over subscriptions, invoices and payments."},
    {"name": "audit", "description": "Append-only trail of every domain write, with the acting user."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting subledger API v%s...", API_VERSION)

    error_registry.load()

    # Thread pool for run_sync() / asyncio.to_thread()
    executor = ThreadPoolExecutor(max_workers=16)
    loop = asyncio.get_running_loop()
    loop.set_default_executor(executor)

    init_db()  # create tables or run Alembic migrations
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down subledger API...")
    close_db()
    executor.shutdown(wait=False)
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # request_id / correlation_id / actor_id in every log line
    app.add_middleware(CorrelationMiddleware)

    # Structured error envelope
    app.add_exception_handler(SubledgerError, subledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Catch-all handler so unhandled exceptions return JSON (not bare text)
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        info = error_registry.get("SUB-SYS-001")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "SUB-SYS-001",
                    "title": info.title if info else "Internal error",
                    "message": info.safe_message if info else "Internal Server Error",
                    "detail": None,
                    "retryable": info.retryable if info else True,
                    "remediation": list(info.remediation) if info else [],
                }
            },
        )

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(catalog.router, prefix="/api", tags=["catalog"])
    app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["subscriptions"])
    app.include_router(invoices.router, prefix="/api/invoices", tags=["invoices"])
    app.include_router(payments.router, prefix="/api", tags=["payments"])
    app.include_router(discounts.router, prefix="/api/discounts", tags=["discounts"])
    app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
    app.include_router(audit.router, prefix="/api/audit", tags=["audit"])

    # Root endpoint
    @app.get("/", tags=["health"], summary="API Root", description="Returns basic API information and links to documentation.")
    async def root():
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "status": "running",
            "docs": {
                "swagger": "/docs",
                "redoc": "/redoc",
                "openapi": "/openapi.json",
            },
        }

    return app


# Create the app instance
app = create_app()
