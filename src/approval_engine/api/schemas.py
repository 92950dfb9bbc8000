"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from approval_engine.services.state_machine import FinalizeAction


# ============================================================================
# Report schemas
# ============================================================================


class ReportCreate(BaseModel):
    """Schema for creating a new draft report."""

    title: str | None = None
    report_type: Literal["expense", "timesheet"] = "expense"
    period_start: date | None = None


class ReportResponse(BaseModel):
    """Schema for report response."""

    model_config = ConfigDict(from_attributes=True)

    report_id: UUID
    employee_id: UUID
    report_type: str
    title: str | None = None
    period_start: date | None = None
    status: str
    total_amount: Decimal
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReportListResponse(BaseModel):
    """Schema for listing reports."""

    items: list[ReportResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# Line schemas
# ============================================================================


class LineCreate(BaseModel):
    """Schema for adding a line; incomplete lines stay in draft."""

    line_date: date | None = None
    category: str | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    project_id: UUID | None = None
    description: str | None = None


class LineUpdate(LineCreate):
    """Schema for editing a line. Only fields that are sent get written."""


class LineResponse(BaseModel):
    """Schema for line item response."""

    model_config = ConfigDict(from_attributes=True)

    line_id: UUID
    report_id: UUID
    position: int
    status: str
    line_date: date | None = None
    category: str | None = None
    amount: Decimal | None = None
    project_id: UUID | None = None
    description: str | None = None
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None


class ReportDetailResponse(ReportResponse):
    """Report with its line items."""

    lines: list[LineResponse] = []


# ============================================================================
# Transition schemas
# ============================================================================


class DecisionRequest(BaseModel):
    """Reviewer decision used by finalize and line review."""

    action: FinalizeAction
    reason: str | None = None


class TransitionResponse(BaseModel):
    """Outcome of a transition."""

    report_id: UUID
    status: str
    lines_updated: int = 0
    line: LineResponse | None = None


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    kind: str
