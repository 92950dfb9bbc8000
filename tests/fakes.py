"""In-memory store and sink doubles for controller and dispatcher tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Sequence
from uuid import UUID, uuid4

from approval_engine.services.errors import ConflictError, NotFound
from approval_engine.services.stores import EmployeeRecord, LineRecord, ReportRecord


def _plain(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


class InMemoryStore:
    """Implements LineItemStore, ReportStore and EmployeeDirectory in memory.

    ``failures`` maps a method name to an exception raised on its next call.
    ``before_update_report`` runs just before each aggregate write, which lets
    tests simulate a concurrent writer.
    """

    def __init__(self) -> None:
        self.employees: dict[UUID, EmployeeRecord] = {}
        self.reports: dict[UUID, ReportRecord] = {}
        self.lines: dict[UUID, LineRecord] = {}
        self.failures: dict[str, Exception] = {}
        self.before_update_report: Callable[[UUID], None] | None = None
        self.calls: list[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        exc = self.failures.pop(name, None)
        if exc is not None:
            raise exc

    @property
    def write_calls(self) -> list[str]:
        writes = {"bulk_set_status", "add_line", "update_line", "update_report", "create_report"}
        return [c for c in self.calls if c in writes]

    # -- seeding helpers -------------------------------------------------

    def add_employee(self, **fields: Any) -> EmployeeRecord:
        fields.setdefault("employee_id", uuid4())
        record = EmployeeRecord(**fields)
        self.employees[record.employee_id] = record
        return record

    def seed_report(self, employee_id: UUID, status: str = "draft", **fields: Any) -> ReportRecord:
        fields.setdefault("report_id", uuid4())
        record = ReportRecord(employee_id=employee_id, status=status, **fields)
        self.reports[record.report_id] = record
        return record

    def seed_line(
        self,
        report_id: UUID,
        status: str = "draft",
        *,
        complete: bool = True,
        **fields: Any,
    ) -> LineRecord:
        if complete:
            fields.setdefault("line_date", date(2025, 11, 3))
            fields.setdefault("category", "travel")
            fields.setdefault("amount", Decimal("10.00"))
            fields.setdefault("project_id", uuid4())
        position = sum(1 for line in self.lines.values() if line.report_id == report_id) + 1
        fields.setdefault("position", position)
        record = LineRecord(line_id=uuid4(), report_id=report_id, status=status, **fields)
        self.lines[record.line_id] = record
        return record

    # -- LineItemStore ---------------------------------------------------

    async def list_lines_by_report(self, report_id: UUID) -> list[LineRecord]:
        self._enter("list_lines_by_report")
        lines = [line for line in self.lines.values() if line.report_id == report_id]
        return sorted(lines, key=lambda line: line.position)

    async def get_line(self, line_id: UUID) -> LineRecord | None:
        self._enter("get_line")
        return self.lines.get(line_id)

    async def bulk_set_status(self, line_ids: Sequence[UUID], status: str) -> int:
        self._enter("bulk_set_status")
        value = status.value if isinstance(status, Enum) else status
        count = 0
        for line_id in line_ids:
            if line_id in self.lines:
                self.lines[line_id] = replace(self.lines[line_id], status=value)
                count += 1
        return count

    async def add_line(self, report_id: UUID, fields: dict[str, Any]) -> LineRecord:
        self._enter("add_line")
        position = max(
            (line.position for line in self.lines.values() if line.report_id == report_id),
            default=0,
        )
        record = LineRecord(
            line_id=uuid4(), report_id=report_id, position=position + 1, **_plain(fields)
        )
        self.lines[record.line_id] = record
        return record

    async def update_line(self, line_id: UUID, fields: dict[str, Any]) -> LineRecord:
        self._enter("update_line")
        if line_id not in self.lines:
            raise NotFound("Line not found.")
        self.lines[line_id] = replace(self.lines[line_id], **_plain(fields))
        return self.lines[line_id]

    # -- ReportStore -----------------------------------------------------

    async def get_report(self, report_id: UUID) -> ReportRecord | None:
        self._enter("get_report")
        return self.reports.get(report_id)

    async def update_report(
        self,
        report_id: UUID,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> ReportRecord:
        self._enter("update_report")
        if self.before_update_report is not None:
            self.before_update_report(report_id)
        current = self.reports.get(report_id)
        if current is None:
            raise NotFound("Report not found.")
        if isinstance(expected_status, Enum):
            expected_status = expected_status.value
        if expected_status is not None and current.status != expected_status:
            raise ConflictError(report_id, expected_status, current.status)
        self.reports[report_id] = replace(current, **_plain(fields))
        return self.reports[report_id]

    async def create_report(self, employee_id: UUID, fields: dict[str, Any]) -> ReportRecord:
        self._enter("create_report")
        record = ReportRecord(report_id=uuid4(), employee_id=employee_id, **_plain(fields))
        self.reports[record.report_id] = record
        return record

    async def list_reports(
        self,
        *,
        employee_id: UUID | None = None,
        status: str | None = None,
        report_type: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ReportRecord], int]:
        self._enter("list_reports")
        reports = [
            r
            for r in self.reports.values()
            if (employee_id is None or r.employee_id == employee_id)
            and (status is None or r.status == status)
            and (report_type is None or r.report_type == report_type)
        ]
        return reports[offset : offset + limit], len(reports)

    # -- EmployeeDirectory -----------------------------------------------

    async def get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        self._enter("get_employee")
        return self.employees.get(employee_id)


class RecordingSink:
    """EmailSink that keeps sent messages, or raises ``error`` when set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.error = error

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((to, subject, html))
