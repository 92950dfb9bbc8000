"""Transition controller - orchestrates the report approval workflow."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncGenerator, Callable, Union
from uuid import UUID

from approval_engine.metrics import ApprovalMetrics
from approval_engine.notifications.types import (
    Notification,
    NotificationEvent,
    period_label,
)
from approval_engine.services.errors import (
    ApprovalError,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from approval_engine.services.state_machine import (
    FinalizeAction,
    LineStateMachine,
    Status,
    derive_status,
)
from approval_engine.services.stores import (
    EmployeeDirectory,
    EmployeeRecord,
    LineItemStore,
    LineRecord,
    ReportRecord,
    ReportStore,
)

logger = logging.getLogger(__name__)

FINALIZE_GATE_MESSAGE = "All entries must be approved before finalizing this report."

# Line amounts are stored as Numeric(12, 2)
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("10000000000")

# Line fields the owner may edit
EDITABLE_LINE_FIELDS = frozenset(
    {"line_date", "category", "amount", "project_id", "description"}
)


@dataclass(frozen=True)
class CallerIdentity:
    """Resolved caller, supplied by the authentication layer."""

    user_id: UUID
    role: str = "employee"


@dataclass(frozen=True)
class SubmitCommand:
    """Owner submits the report for review."""


@dataclass(frozen=True)
class FinalizeCommand:
    """Reviewer signs off on a fully approved report."""

    action: FinalizeAction
    reason: str | None = None


@dataclass(frozen=True)
class ReviewLineCommand:
    """Reviewer decides on one submitted line."""

    line_id: UUID
    action: FinalizeAction
    reason: str | None = None


Command = Union[SubmitCommand, FinalizeCommand, ReviewLineCommand]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a controller operation.

    ``notification`` is set when the transition is eligible for an email; the
    caller hands it to a NotificationDispatcher once its writes are durable.
    """

    report: ReportRecord
    lines_updated: int = 0
    line: LineRecord | None = None
    notification: Notification | None = None

    @property
    def report_id(self) -> UUID:
        return self.report.report_id

    @property
    def status(self) -> Status:
        return Status(self.report.status)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    return reason.strip() or None


def _parse_action(action: FinalizeAction | str) -> FinalizeAction:
    try:
        return FinalizeAction(action)
    except ValueError:
        raise ValidationError("Invalid action (expected approve or reject).") from None


@dataclass
class TransitionController:
    """Submit / finalize / review workflow over injected stores.

    Operations:
    - submit: owner sends draft and rejected lines for review
    - finalize: reviewer approves or rejects a report whose lines are all approved
    - review_line: reviewer approves or rejects one submitted line
    - create_report / add_line / update_line: owner maintenance

    Every operation re-reads the rows it needs and checks all preconditions
    before writing. Line writes happen before the aggregate write, and the
    aggregate write is conditional on the status read at the start
    (ConflictError on mismatch).
    """

    lines: LineItemStore
    reports: ReportStore
    employees: EmployeeDirectory
    metrics: ApprovalMetrics = field(default_factory=ApprovalMetrics)
    fallback_reviewer_email: str | None = None
    clock: Callable[[], datetime] = _now

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def execute(
        self,
        report_id: UUID,
        caller: CallerIdentity | None,
        command: Command,
    ) -> TransitionResult:
        """Dispatch a command variant to its operation."""
        if isinstance(command, SubmitCommand):
            return await self.submit(report_id, caller)
        if isinstance(command, FinalizeCommand):
            return await self.finalize(report_id, caller, command.action, command.reason)
        if isinstance(command, ReviewLineCommand):
            return await self.review_line(
                command.line_id,
                caller,
                command.action,
                command.reason,
                report_id=report_id,
            )
        raise TypeError(f"Unsupported command: {command!r}")

    # ------------------------------------------------------------------
    # Submit / finalize
    # ------------------------------------------------------------------

    async def submit(
        self, report_id: UUID, caller: CallerIdentity | None
    ) -> TransitionResult:
        """Submit a report for review.

        Draft and rejected lines move to submitted, approved lines are left
        alone. The aggregate becomes submitted with a fresh submitted_at,
        prior terminal fields cleared and total_amount recomputed.
        """
        async with self._observe("submit"):
            caller = self._require_caller(caller)
            report = await self._load_report(report_id)
            if report.employee_id != caller.user_id:
                raise Forbidden("You are not allowed to submit this report.")

            lines = await self.lines.list_lines_by_report(report_id)
            if not lines:
                raise ValidationError("No lines to submit for this report.")

            for position, line in enumerate(lines, start=1):
                missing = line.missing_fields()
                if missing:
                    raise ValidationError(
                        f"Line #{position} is missing a valid {', '.join(missing)}."
                    )

            to_submit = [
                line.line_id for line in lines if LineStateMachine.is_submittable(line.status)
            ]
            total = sum((line.amount or Decimal("0") for line in lines), Decimal("0"))

            updated_count = 0
            if to_submit:
                updated_count = await self.lines.bulk_set_status(to_submit, Status.SUBMITTED)

            fields = {
                "status": Status.SUBMITTED,
                "submitted_at": self.clock(),
                "total_amount": total,
                "approved_at": None,
                "approved_by": None,
                "rejected_at": None,
                "rejection_reason": None,
            }
            updated = await self._write_aggregate(report, fields, lines_written=bool(to_submit))

            logger.info(
                "Report %s submitted by %s (%d line(s) moved, total %s)",
                report_id,
                caller.user_id,
                updated_count,
                total,
            )
            self.metrics.inc("approval_transitions_total", operation="submit", status="submitted")

            notification = await self._submission_notification(updated)
            return TransitionResult(
                report=updated,
                lines_updated=updated_count,
                notification=notification,
            )

    async def finalize(
        self,
        report_id: UUID,
        caller: CallerIdentity | None,
        action: FinalizeAction | str,
        reason: str | None = None,
    ) -> TransitionResult:
        """Approve or reject a report whose lines are all approved.

        Sets the aggregate status directly; line approval must already be
        complete, the sign-off itself is the reviewer's decision.
        """
        async with self._observe("finalize"):
            caller = self._require_caller(caller)
            action = _parse_action(action)
            report = await self._load_report(report_id)

            lines = await self.lines.list_lines_by_report(report_id)
            if not LineStateMachine.all_approved(lines):
                raise ValidationError(FINALIZE_GATE_MESSAGE)

            now = self.clock()
            if action == FinalizeAction.APPROVE:
                fields: dict[str, Any] = {
                    "status": Status.APPROVED,
                    "approved_by": caller.user_id,
                    "approved_at": now,
                }
            else:
                fields = {
                    "status": Status.REJECTED,
                    "rejection_reason": _clean_reason(reason),
                    "rejected_at": now,
                }

            updated = await self._write_aggregate(report, fields)

            logger.info(
                "Report %s finalized as %s by %s", report_id, updated.status, caller.user_id
            )
            self.metrics.inc(
                "approval_transitions_total", operation="finalize", status=updated.status
            )

            event = (
                NotificationEvent.APPROVED
                if updated.status == Status.APPROVED
                else NotificationEvent.REJECTED
            )
            notification = await self._employee_notification(
                updated, event, updated.rejection_reason
            )
            return TransitionResult(report=updated, notification=notification)

    # ------------------------------------------------------------------
    # Line review
    # ------------------------------------------------------------------

    async def review_line(
        self,
        line_id: UUID,
        caller: CallerIdentity | None,
        action: FinalizeAction | str,
        reason: str | None = None,
        report_id: UUID | None = None,
    ) -> TransitionResult:
        """Approve or reject one submitted line, re-derive its report and
        notify the employee of the decision."""
        async with self._observe("review_line"):
            caller = self._require_caller(caller)
            action = _parse_action(action)

            line = await self.lines.get_line(line_id)
            if line is None or (report_id is not None and line.report_id != report_id):
                raise NotFound("Line not found.")

            target = Status.APPROVED if action == FinalizeAction.APPROVE else Status.REJECTED
            LineStateMachine.validate_transition(line.status, target)

            cleaned = _clean_reason(reason)
            if target == Status.REJECTED and cleaned is None:
                raise ValidationError("Rejection reason is required.")

            report = await self._load_report(line.report_id)

            updated_line = await self.lines.update_line(
                line_id,
                {
                    "status": target,
                    "rejection_reason": cleaned if target == Status.REJECTED else None,
                    "reviewed_by": caller.user_id,
                    "reviewed_at": self.clock(),
                },
            )
            updated = await self._rederive(report)

            logger.info(
                "Line %s of report %s %s by %s; report now %s",
                line_id,
                report.report_id,
                target.value,
                caller.user_id,
                updated.status,
            )
            self.metrics.inc(
                "approval_transitions_total", operation="review_line", status=target.value
            )

            event = (
                NotificationEvent.APPROVED
                if target == Status.APPROVED
                else NotificationEvent.REJECTED
            )
            notification = await self._employee_notification(updated, event, cleaned)
            return TransitionResult(
                report=updated,
                lines_updated=1,
                line=updated_line,
                notification=notification,
            )

    # ------------------------------------------------------------------
    # Owner maintenance
    # ------------------------------------------------------------------

    async def create_report(
        self,
        caller: CallerIdentity | None,
        *,
        title: str | None = None,
        report_type: str = "expense",
        period_start: Any = None,
    ) -> ReportRecord:
        """Create an empty draft report owned by the caller."""
        async with self._observe("create_report"):
            caller = self._require_caller(caller)
            if await self.employees.get_employee(caller.user_id) is None:
                raise NotFound("Employee not found.")

            report = await self.reports.create_report(
                caller.user_id,
                {
                    "title": title,
                    "report_type": report_type,
                    "period_start": period_start,
                    "status": Status.DRAFT,
                    "total_amount": Decimal("0"),
                },
            )
            logger.info("Report %s created by %s", report.report_id, caller.user_id)
            return report

    async def add_line(
        self,
        report_id: UUID,
        caller: CallerIdentity | None,
        fields: dict[str, Any],
    ) -> TransitionResult:
        """Append a draft line to the caller's report."""
        async with self._observe("add_line"):
            caller = self._require_caller(caller)
            report = await self._load_owned_report(report_id, caller)
            values = self._editable(fields)
            values["status"] = Status.DRAFT

            line = await self.lines.add_line(report_id, values)
            updated = await self._rederive(report)
            logger.info("Line %s added to report %s", line.line_id, report_id)
            return TransitionResult(report=updated, lines_updated=1, line=line)

    async def update_line(
        self,
        report_id: UUID,
        line_id: UUID,
        caller: CallerIdentity | None,
        fields: dict[str, Any],
    ) -> TransitionResult:
        """Edit a line's fields; the line returns to draft."""
        async with self._observe("update_line"):
            caller = self._require_caller(caller)
            report = await self._load_owned_report(report_id, caller)

            line = await self.lines.get_line(line_id)
            if line is None or line.report_id != report_id:
                raise NotFound("Line not found.")
            if line.status != Status.DRAFT:
                LineStateMachine.validate_transition(line.status, Status.DRAFT)

            values = self._editable(fields)
            values.update(
                status=Status.DRAFT,
                rejection_reason=None,
                reviewed_by=None,
                reviewed_at=None,
            )
            updated_line = await self.lines.update_line(line_id, values)
            updated = await self._rederive(report)
            logger.info("Line %s of report %s edited; back to draft", line_id, report_id)
            return TransitionResult(report=updated, lines_updated=1, line=updated_line)

    async def get_report(
        self, report_id: UUID, caller: CallerIdentity | None
    ) -> tuple[ReportRecord, list[LineRecord]]:
        """Load a report with its lines."""
        self._require_caller(caller)
        report = await self._load_report(report_id)
        lines = await self.lines.list_lines_by_report(report_id)
        return report, lines

    async def list_reports(
        self,
        caller: CallerIdentity | None,
        *,
        employee_id: UUID | None = None,
        status: str | None = None,
        report_type: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ReportRecord], int]:
        """Page through reports, newest first."""
        self._require_caller(caller)
        if status is not None:
            try:
                status = Status(status).value
            except ValueError:
                raise ValidationError(f"Unknown status filter: {status!r}.") from None
        return await self.reports.list_reports(
            employee_id=employee_id,
            status=status,
            report_type=report_type,
            offset=offset,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _observe(self, operation: str) -> AsyncGenerator[None, None]:
        try:
            yield
        except ApprovalError as exc:
            self.metrics.inc("approval_errors_total", operation=operation, kind=exc.kind)
            if exc.status_code >= 500:
                logger.error("%s failed (%s): %s", operation, exc.kind, exc.message)
            else:
                logger.info("%s refused (%s): %s", operation, exc.kind, exc.message)
            raise

    @staticmethod
    def _require_caller(caller: CallerIdentity | None) -> CallerIdentity:
        if caller is None:
            raise Unauthenticated()
        return caller

    async def _load_report(self, report_id: UUID) -> ReportRecord:
        report = await self.reports.get_report(report_id)
        if report is None:
            raise NotFound("Report not found.")
        return report

    async def _load_owned_report(
        self, report_id: UUID, caller: CallerIdentity
    ) -> ReportRecord:
        report = await self._load_report(report_id)
        if report.employee_id != caller.user_id:
            raise Forbidden("You can only edit your own reports.")
        if report.report_type == "timesheet" and report.status == Status.APPROVED:
            raise ValidationError("Approved timesheets cannot be modified.")
        return report

    @staticmethod
    def _editable(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - EDITABLE_LINE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown line fields: {', '.join(sorted(unknown))}.")
        values = dict(fields)
        if values.get("amount") is not None:
            try:
                values["amount"] = Decimal(str(values["amount"]))
            except InvalidOperation:
                raise ValidationError("Amount must be a positive number.") from None
            amount = values["amount"]
            if not amount.is_finite() or amount <= 0:
                raise ValidationError("Amount must be a positive number.")
            if amount >= MAX_AMOUNT:
                raise ValidationError(f"Amount must be less than {MAX_AMOUNT:,}.")
            if amount != amount.quantize(CENT):
                raise ValidationError("Amount must have at most 2 decimal places.")
            values["amount"] = amount.quantize(CENT)
        return values

    async def _write_aggregate(
        self,
        report: ReportRecord,
        fields: dict[str, Any],
        lines_written: bool = False,
    ) -> ReportRecord:
        try:
            return await self.reports.update_report(
                report.report_id, fields, expected_status=report.status
            )
        except ApprovalError:
            if lines_written:
                # Lines are already written; the aggregate may lag until the next write.
                logger.error(
                    "Report %s aggregate update failed after line statuses were written",
                    report.report_id,
                )
            raise

    async def _rederive(self, report: ReportRecord) -> ReportRecord:
        lines = await self.lines.list_lines_by_report(report.report_id)
        derived = derive_status(lines)
        return await self._write_aggregate(report, {"status": derived}, lines_written=True)

    async def _submission_notification(self, report: ReportRecord) -> Notification | None:
        try:
            employee = await self.employees.get_employee(report.employee_id)
            recipient = None
            if employee is not None and employee.manager_id is not None:
                manager = await self.employees.get_employee(employee.manager_id)
                if manager is not None and manager.email:
                    recipient = manager.email
        except ApprovalError:
            logger.exception("Could not resolve reviewer for report %s", report.report_id)
            return None

        recipient = recipient or self.fallback_reviewer_email
        if not recipient:
            logger.warning(
                "No manager email and no fallback reviewer for report %s; skipping email",
                report.report_id,
            )
            return None

        return self._notification(
            NotificationEvent.SUBMITTED,
            report,
            employee,
            recipient,
            name_fallback="Employee",
            period_fallback="Recent period",
        )

    async def _employee_notification(
        self,
        report: ReportRecord,
        event: NotificationEvent,
        reason: str | None = None,
    ) -> Notification | None:
        try:
            employee = await self.employees.get_employee(report.employee_id)
        except ApprovalError:
            logger.exception("Could not load employee for report %s", report.report_id)
            return None

        if employee is None or not employee.email:
            logger.warning("Employee for report %s has no email; skipping", report.report_id)
            return None

        return self._notification(
            event,
            report,
            employee,
            employee.email,
            name_fallback="there",
            period_fallback="your recent period",
            reason=reason if event == NotificationEvent.REJECTED else None,
        )

    @staticmethod
    def _notification(
        event: NotificationEvent,
        report: ReportRecord,
        employee: EmployeeRecord | None,
        recipient: str,
        *,
        name_fallback: str,
        period_fallback: str,
        reason: str | None = None,
    ) -> Notification:
        default_title = "Timesheet" if report.report_type == "timesheet" else "Expense Report"
        return Notification(
            event=event,
            report_id=report.report_id,
            recipient=recipient,
            employee_name=(employee.full_name if employee else "") or name_fallback,
            report_title=report.title or default_title,
            period=period_label(report.period_start, period_fallback),
            report_type=report.report_type,
            reason=reason,
            total_amount=report.total_amount if event == NotificationEvent.SUBMITTED else None,
        )
