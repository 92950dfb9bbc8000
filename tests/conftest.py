"""Pytest fixtures for approval engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.config import Settings
from approval_engine.database import create_all, create_engine, create_session_factory
from approval_engine.metrics import ApprovalMetrics
from approval_engine.services.transition_service import (
    CallerIdentity,
    TransitionController,
)

from .fakes import InMemoryStore

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2025, 11, 14, 9, 30, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        store_timeout_seconds=5.0,
        app_url="https://portal.example.com",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def engine(settings: Settings):
    """Create test database engine."""
    engine = create_engine(settings)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with create_session_factory(engine)() as session:
        yield session
        await session.rollback()


# ============================================================================
# Controller over in-memory stores
# ============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def metrics() -> ApprovalMetrics:
    return ApprovalMetrics()


@pytest.fixture
def controller(store: InMemoryStore, metrics: ApprovalMetrics) -> TransitionController:
    return TransitionController(
        lines=store,
        reports=store,
        employees=store,
        metrics=metrics,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def manager(store: InMemoryStore):
    return store.add_employee(
        first_name="Maria", last_name="Lopez", email="maria@example.com", role="manager"
    )


@pytest.fixture
def employee(store: InMemoryStore, manager):
    return store.add_employee(
        first_name="Sam",
        last_name="Reed",
        email="sam@example.com",
        manager_id=manager.employee_id,
    )


@pytest.fixture
def owner(employee) -> CallerIdentity:
    return CallerIdentity(user_id=employee.employee_id)


@pytest.fixture
def reviewer(manager) -> CallerIdentity:
    return CallerIdentity(user_id=manager.employee_id, role="manager")
