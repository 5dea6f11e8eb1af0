"""
Main FastAPI application.

Payment confirmation API with:
- Webhook ingestion and payment verification
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payment_confirmation import __version__
from payment_confirmation.config import Settings, get_settings
from payment_confirmation.core.event_tracker import EventTracker, HttpEventSink, LogEventSink
from payment_confirmation.core.signature import SignatureVerifier
from payment_confirmation.core.transaction_store import TransactionStore
from payment_confirmation.core.verification import VerificationService
from payment_confirmation.core.webhook_ingestor import WebhookIngestor
from payment_confirmation.database.connection import build_engine, close_db
from payment_confirmation.monitoring.health import HealthCheck
from payment_confirmation.monitoring.logging import setup_logging

from .routes import monitoring_router, payment_router, tracking_router, webhook_router

logger = structlog.get_logger(__name__)


def build_event_tracker(settings: Settings) -> EventTracker:
    """Post events to the analytics backend when configured, else log them."""
    if settings.analytics_sink_url:
        sink = HttpEventSink(
            settings.analytics_sink_url, timeout_seconds=settings.event_sink_timeout_seconds
        )
    else:
        sink = LogEventSink()
    return EventTracker(sink, timeout_seconds=settings.event_sink_timeout_seconds)


def install_services(
    app: FastAPI, settings: Settings, store: TransactionStore, tracker: EventTracker
) -> None:
    """Wire the process-wide services onto ``app.state``."""
    verifier = SignatureVerifier(
        settings.provider_webhook_secret, header_name=settings.provider_signature_header
    )
    app.state.transaction_store = store
    app.state.event_tracker = tracker
    app.state.verification_service = VerificationService(store, tracker)
    app.state.webhook_ingestor = WebhookIngestor(
        store,
        tracker,
        verifier,
        provider=settings.provider_name,
        default_package_id=settings.default_package_id,
    )
    app.state.health_check = HealthCheck(store)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[TransactionStore] = None,
    tracker: Optional[EventTracker] = None,
) -> FastAPI:
    """
    Build the application.

    Without an injected store, the engine and store are created at startup
    and released at shutdown. The schema must already exist (see the
    ``init-db`` command).

    Args:
        settings: Application settings (loaded from the environment if omitted)
        store: Pre-built transaction store
        tracker: Pre-built event tracker

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        # Startup
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            provider=settings.provider_name,
        )

        engine = None
        if store is None:
            engine = build_engine(settings)
            install_services(
                app,
                settings,
                TransactionStore(engine, timeout_seconds=settings.store_timeout_seconds),
                tracker or build_event_tracker(settings),
            )
            logger.info("database_engine_created")

        yield

        # Shutdown
        logger.info("application_shutdown")
        try:
            await app.state.event_tracker.close()
            await app.state.transaction_store.close()
            if engine is not None:
                await close_db(engine)
            logger.info("database_connections_closed")
        except Exception as e:
            logger.error("application_shutdown_error", error=str(e))

    app = FastAPI(
        title="Payment Confirmation Service",
        description=(
            "Confirms payments made through an external provider. "
            "Features: signed webhook ingestion, idempotent status transitions, "
            "payment verification and analytics events."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    if store is not None:
        install_services(app, settings, store, tracker or build_event_tracker(settings))

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Tag every request with an id and bind it to the log context."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        logger.info(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    # Include routers
    app.include_router(payment_router)
    app.include_router(webhook_router)
    app.include_router(tracking_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app
