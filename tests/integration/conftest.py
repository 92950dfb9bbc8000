"""Integration test fixtures: the full app over in-memory SQLite."""

from collections.abc import AsyncGenerator
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

from approval_engine.api.app import create_app
from approval_engine.database import create_all
from approval_engine.models import Employee
from approval_engine.notifications import EmailRenderer, NotificationDispatcher

from ..conftest import make_settings
from ..fakes import RecordingSink

MANAGER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
EMPLOYEE_ID = UUID("00000000-0000-0000-0000-0000000000b2")
OTHER_EMPLOYEE_ID = UUID("00000000-0000-0000-0000-0000000000c3")


def headers(user_id: UUID, role: str = "employee") -> dict[str, str]:
    return {"X-User-ID": str(user_id), "X-User-Role": role}


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def app(sink: RecordingSink):
    """Application with seeded employees and a recording email sink."""
    app = create_app(make_settings(manager_notify_email="approvals@example.com"))
    await create_all(app.state.engine)

    async with app.state.session_factory() as session:
        session.add(
            Employee(
                employee_id=MANAGER_ID,
                first_name="Maria",
                last_name="Lopez",
                email="maria@example.com",
                role="manager",
            )
        )
        session.add_all(
            [
                Employee(
                    employee_id=EMPLOYEE_ID,
                    first_name="Sam",
                    last_name="Reed",
                    email="sam@example.com",
                    manager_id=MANAGER_ID,
                ),
                Employee(
                    employee_id=OTHER_EMPLOYEE_ID,
                    first_name="Kim",
                    last_name="Park",
                    email="kim@example.com",
                ),
            ]
        )
        await session.commit()

    app.state.dispatcher = NotificationDispatcher(
        EmailRenderer(app.state.settings.app_url), sink, app.state.metrics
    )
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
