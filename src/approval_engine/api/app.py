"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from approval_engine import __version__
from approval_engine.api.routes import health_router, reports_router
from approval_engine.config import Settings, get_settings
from approval_engine.database import create_engine, create_session_factory
from approval_engine.metrics import ApprovalMetrics
from approval_engine.notifications import (
    EmailRenderer,
    NotificationDispatcher,
    SmtpEmailSink,
)
from approval_engine.services.errors import ApprovalError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Approval engine starting (store timeout %ss)", app.state.settings.store_timeout_seconds)
    yield
    await app.state.engine.dispose()
    logger.info("Approval engine stopped")


def build_dispatcher(settings: Settings, metrics: ApprovalMetrics) -> NotificationDispatcher:
    """Wire the email dispatcher; without SMTP settings every send is skipped."""
    sink = SmtpEmailSink(settings) if settings.smtp_configured else None
    if sink is None:
        logger.warning("SMTP is not configured; notification emails are disabled")
    return NotificationDispatcher(EmailRenderer(settings.app_url), sink, metrics)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Report Approval API",
        description="Timesheet and expense report approval workflow",
        version=__version__,
        lifespan=lifespan,
    )

    engine = create_engine(settings)
    metrics = ApprovalMetrics()
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.metrics = metrics
    app.state.dispatcher = build_dispatcher(settings, metrics)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(ApprovalError)
    async def approval_error_handler(request: Request, exc: ApprovalError) -> JSONResponse:
        """Render workflow errors as {"error", "kind"}."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render malformed requests in the same shape as workflow errors."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _validation_message(exc), "kind": "validation"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "An unexpected error occurred", "kind": "internal"},
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(reports_router, prefix="/api/v1")

    return app
