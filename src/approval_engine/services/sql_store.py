"""SQLAlchemy binding of the line, report and employee stores."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models import Employee, Report, ReportLine
from approval_engine.services.errors import (
    ConflictError,
    NotFound,
    StoreError,
    StoreTimeout,
)
from approval_engine.services.stores import (
    LINE_FIELDS,
    REPORT_FIELDS,
    EmployeeRecord,
    LineRecord,
    ReportRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0


def _plain(fields: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Validate column names and unwrap enum values."""
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


def line_record(row: ReportLine) -> LineRecord:
    return LineRecord(
        line_id=row.line_id,
        report_id=row.report_id,
        status=row.status,
        line_date=row.line_date,
        category=row.category,
        amount=row.amount,
        project_id=row.project_id,
        position=row.position,
        description=row.description,
        rejection_reason=row.rejection_reason,
        reviewed_by=row.reviewed_by,
        reviewed_at=row.reviewed_at,
    )


def report_record(row: Report) -> ReportRecord:
    return ReportRecord(
        report_id=row.report_id,
        employee_id=row.employee_id,
        status=row.status,
        report_type=row.report_type,
        title=row.title,
        period_start=row.period_start,
        total_amount=row.total_amount,
        submitted_at=row.submitted_at,
        approved_at=row.approved_at,
        approved_by=row.approved_by,
        rejected_at=row.rejected_at,
        rejection_reason=row.rejection_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def employee_record(row: Employee) -> EmployeeRecord:
    return EmployeeRecord(
        employee_id=row.employee_id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        manager_id=row.manager_id,
        role=row.role,
    )


class SqlStore:
    """Implements LineItemStore, ReportStore and EmployeeDirectory.

    Every public call is bounded by ``timeout`` seconds. Timeouts raise
    StoreTimeout and driver failures raise StoreError; neither is retried.
    Transaction boundaries belong to whoever owns the session.
    """

    def __init__(self, session: AsyncSession, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.session = session
        self.timeout = timeout

    async def _bounded(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Store call %s timed out after %ss", operation, self.timeout)
            raise StoreTimeout(operation, self.timeout) from None
        except SQLAlchemyError as exc:
            logger.exception("Store call %s failed", operation)
            raise StoreError(f"Store call '{operation}' failed.") from exc

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    async def list_lines_by_report(self, report_id: UUID) -> list[LineRecord]:
        return await self._bounded("list_lines_by_report", self._list_lines(report_id))

    async def get_line(self, line_id: UUID) -> LineRecord | None:
        return await self._bounded("get_line", self._get_line(line_id))

    async def bulk_set_status(self, line_ids: Sequence[UUID], status: str) -> int:
        if not line_ids:
            return 0
        return await self._bounded(
            "bulk_set_status", self._bulk_set_status(list(line_ids), status)
        )

    async def add_line(self, report_id: UUID, fields: dict[str, Any]) -> LineRecord:
        return await self._bounded(
            "add_line", self._add_line(report_id, _plain(fields, LINE_FIELDS))
        )

    async def update_line(self, line_id: UUID, fields: dict[str, Any]) -> LineRecord:
        return await self._bounded(
            "update_line", self._update_line(line_id, _plain(fields, LINE_FIELDS))
        )

    async def _list_lines(self, report_id: UUID) -> list[LineRecord]:
        result = await self.session.execute(
            select(ReportLine)
            .where(ReportLine.report_id == report_id)
            .order_by(ReportLine.position, ReportLine.created_at)
            .execution_options(populate_existing=True)
        )
        return [line_record(row) for row in result.scalars().all()]

    async def _get_line(self, line_id: UUID) -> LineRecord | None:
        row = await self.session.get(ReportLine, line_id, populate_existing=True)
        return line_record(row) if row is not None else None

    async def _bulk_set_status(self, line_ids: list[UUID], status: str) -> int:
        if isinstance(status, Enum):
            status = status.value
        result = await self.session.execute(
            update(ReportLine)
            .where(ReportLine.line_id.in_(line_ids))
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def _add_line(self, report_id: UUID, fields: dict[str, Any]) -> LineRecord:
        last_position = await self.session.scalar(
            select(func.max(ReportLine.position)).where(ReportLine.report_id == report_id)
        )
        row = ReportLine(
            report_id=report_id,
            position=(last_position or 0) + 1,
            **fields,
        )
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return line_record(row)

    async def _update_line(self, line_id: UUID, fields: dict[str, Any]) -> LineRecord:
        result = await self.session.execute(
            update(ReportLine)
            .where(ReportLine.line_id == line_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Line not found.")
        line = await self._get_line(line_id)
        if line is None:
            raise NotFound("Line not found.")
        return line

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def get_report(self, report_id: UUID) -> ReportRecord | None:
        return await self._bounded("get_report", self._get_report(report_id))

    async def update_report(
        self,
        report_id: UUID,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> ReportRecord:
        if isinstance(expected_status, Enum):
            expected_status = expected_status.value
        return await self._bounded(
            "update_report",
            self._update_report(report_id, _plain(fields, REPORT_FIELDS), expected_status),
        )

    async def create_report(
        self, employee_id: UUID, fields: dict[str, Any]
    ) -> ReportRecord:
        return await self._bounded(
            "create_report",
            self._create_report(employee_id, _plain(fields, REPORT_FIELDS)),
        )

    async def list_reports(
        self,
        *,
        employee_id: UUID | None = None,
        status: str | None = None,
        report_type: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ReportRecord], int]:
        return await self._bounded(
            "list_reports",
            self._list_reports(employee_id, status, report_type, offset, limit),
        )

    async def _get_report(self, report_id: UUID) -> ReportRecord | None:
        row = await self.session.get(Report, report_id, populate_existing=True)
        return report_record(row) if row is not None else None

    async def _update_report(
        self,
        report_id: UUID,
        fields: dict[str, Any],
        expected_status: str | None,
    ) -> ReportRecord:
        stmt = update(Report).where(Report.report_id == report_id)
        if expected_status is not None:
            stmt = stmt.where(Report.status == expected_status)

        result = await self.session.execute(
            stmt.values(**fields).execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = await self._get_report(report_id)
            if current is None:
                raise NotFound("Report not found.")
            raise ConflictError(report_id, expected_status or "", current.status)

        report = await self._get_report(report_id)
        if report is None:
            raise NotFound("Report not found.")
        return report

    async def _create_report(
        self, employee_id: UUID, fields: dict[str, Any]
    ) -> ReportRecord:
        row = Report(employee_id=employee_id, **fields)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return report_record(row)

    async def _list_reports(
        self,
        employee_id: UUID | None,
        status: str | None,
        report_type: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[ReportRecord], int]:
        query = select(Report)
        if employee_id:
            query = query.where(Report.employee_id == employee_id)
        if status:
            query = query.where(Report.status == status)
        if report_type:
            query = query.where(Report.report_type == report_type)

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(Report.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return [report_record(row) for row in result.scalars().all()], total

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        return await self._bounded("get_employee", self._get_employee(employee_id))

    async def _get_employee(self, employee_id: UUID) -> EmployeeRecord | None:
        row = await self.session.get(Employee, employee_id)
        return employee_record(row) if row is not None else None
