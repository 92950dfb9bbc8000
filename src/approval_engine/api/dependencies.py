"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.config import Settings
from approval_engine.notifications import NotificationDispatcher
from approval_engine.services.errors import Unauthenticated
from approval_engine.services.sql_store import SqlStore
from approval_engine.services.transition_service import (
    CallerIdentity,
    TransitionController,
)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Routes commit explicitly; anything left uncommitted is rolled back.
    """
    async with request.app.state.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


async def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CallerIdentity | None:
    """Resolve the caller from identity headers.

    A missing header yields None so the controller reports Unauthenticated.
    """
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise Unauthenticated("Invalid X-User-ID header.") from None
    return CallerIdentity(user_id=user_id, role=x_user_role or "employee")


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
Caller = Annotated[CallerIdentity | None, Depends(get_caller)]


def get_controller(request: Request, db: DbSession, settings: AppSettings) -> TransitionController:
    """Build a controller bound to this request's session."""
    store = SqlStore(db, timeout=settings.store_timeout_seconds)
    return TransitionController(
        lines=store,
        reports=store,
        employees=store,
        metrics=request.app.state.metrics,
        fallback_reviewer_email=settings.manager_notify_email,
    )


Controller = Annotated[TransitionController, Depends(get_controller)]
