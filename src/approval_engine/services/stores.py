"""Store protocols and record types consumed by the transition controller.

The controller works only against these protocols. ``SqlStore`` binds them
to SQLAlchemy; tests bind them to in-memory fakes.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, Sequence
from uuid import UUID


@dataclass(frozen=True)
class LineRecord:
    """Snapshot of one line item as read from the store."""

    line_id: UUID
    report_id: UUID
    status: str
    line_date: datetime.date | None = None
    category: str | None = None
    amount: Decimal | None = None
    project_id: UUID | None = None
    position: int = 0
    description: str | None = None
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime.datetime | None = None

    def missing_fields(self) -> list[str]:
        """Names of fields that block this line from leaving draft."""
        missing = []
        if self.line_date is None:
            missing.append("date")
        if not self.project_id:
            missing.append("project")
        if not self.category:
            missing.append("category")
        if self.amount is None or self.amount <= 0:
            missing.append("amount")
        return missing


@dataclass(frozen=True)
class ReportRecord:
    """Snapshot of one report aggregate as read from the store."""

    report_id: UUID
    employee_id: UUID
    status: str
    report_type: str = "expense"
    title: str | None = None
    period_start: datetime.date | None = None
    total_amount: Decimal = Decimal("0")
    submitted_at: datetime.datetime | None = None
    approved_at: datetime.datetime | None = None
    approved_by: UUID | None = None
    rejected_at: datetime.datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


@dataclass(frozen=True)
class EmployeeRecord:
    """Employee lookup used for ownership display and notifications."""

    employee_id: UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    manager_id: UUID | None = None
    role: str = "employee"

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


# Columns callers may write through the stores
REPORT_FIELDS = frozenset(
    {
        "status",
        "title",
        "report_type",
        "period_start",
        "total_amount",
        "submitted_at",
        "approved_at",
        "approved_by",
        "rejected_at",
        "rejection_reason",
    }
)

LINE_FIELDS = frozenset(
    {
        "status",
        "line_date",
        "category",
        "amount",
        "project_id",
        "description",
        "rejection_reason",
        "reviewed_by",
        "reviewed_at",
    }
)


class LineItemStore(Protocol):
    """Line items keyed by their parent report."""

    async def list_lines_by_report(self, report_id: UUID) -> list[LineRecord]:
        """Return all lines of a report ordered by position."""
        ...

    async def get_line(self, line_id: UUID) -> LineRecord | None:
        """Return one line or None."""
        ...

    async def bulk_set_status(self, line_ids: Sequence[UUID], status: str) -> int:
        """Set ``status`` on every listed line, returning the count updated."""
        ...

    async def add_line(self, report_id: UUID, fields: dict[str, Any]) -> LineRecord:
        """Append a new line to a report."""
        ...

    async def update_line(self, line_id: UUID, fields: dict[str, Any]) -> LineRecord:
        """Write ``fields`` to one line and return the fresh snapshot."""
        ...


class ReportStore(Protocol):
    """Report aggregate rows."""

    async def get_report(self, report_id: UUID) -> ReportRecord | None:
        """Return one report or None."""
        ...

    async def update_report(
        self,
        report_id: UUID,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> ReportRecord:
        """Write ``fields`` to a report.

        When ``expected_status`` is given the write only applies if the stored
        status still equals it; otherwise ConflictError is raised.
        """
        ...

    async def create_report(
        self, employee_id: UUID, fields: dict[str, Any]
    ) -> ReportRecord:
        """Insert a new draft report owned by ``employee_id``."""
        ...

    async def list_reports(
        self,
        *,
        employee_id: UUID | None = None,
        status: str | None = None,
        report_type: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ReportRecord], int]:
        """Return a page of reports (newest first) and the total count."""
        ...


class EmployeeDirectory(Protocol):
    """Read-only employee lookups."""

    async def get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        """Return one employee or None."""
        ...
