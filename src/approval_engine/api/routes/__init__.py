"""API routes."""

from approval_engine.api.routes.health import router as health_router
from approval_engine.api.routes.reports import router as reports_router

__all__ = ["reports_router", "health_router"]
