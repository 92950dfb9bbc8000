"""Report approval API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Path, Query, status

from approval_engine.api.dependencies import Caller, Controller, DbSession, Dispatcher
from approval_engine.api.schemas import (
    DecisionRequest,
    ErrorResponse,
    LineCreate,
    LineResponse,
    LineUpdate,
    ReportCreate,
    ReportDetailResponse,
    ReportListResponse,
    ReportResponse,
    TransitionResponse,
)
from approval_engine.services.transition_service import (
    FinalizeCommand,
    ReviewLineCommand,
    SubmitCommand,
    TransitionResult,
)

router = APIRouter(prefix="/reports", tags=["reports"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        report_id=result.report_id,
        status=result.status.value,
        lines_updated=result.lines_updated,
        line=LineResponse.model_validate(result.line) if result.line else None,
    )


def _schedule_notification(
    result: TransitionResult,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
) -> None:
    if result.notification is not None:
        background_tasks.add_task(dispatcher.dispatch, result.notification)


# ============================================================================
# Report CRUD
# ============================================================================


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_report(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    payload: ReportCreate,
) -> ReportResponse:
    """Create a new report in draft status owned by the caller."""
    report = await controller.create_report(
        caller,
        title=payload.title,
        report_type=payload.report_type,
        period_start=payload.period_start,
    )
    await db.commit()
    return ReportResponse.model_validate(report)


@router.get(
    "",
    response_model=ReportListResponse,
    responses=ERROR_RESPONSES,
)
async def list_reports(
    controller: Controller,
    caller: Caller,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    employee_id: UUID | None = None,
    report_type: str | None = None,
) -> ReportListResponse:
    """List reports with optional filters."""
    reports, total = await controller.list_reports(
        caller,
        employee_id=employee_id,
        status=status_filter,
        report_type=report_type,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{report_id}",
    response_model=ReportDetailResponse,
    responses=ERROR_RESPONSES,
)
async def get_report(
    controller: Controller,
    caller: Caller,
    report_id: Annotated[UUID, Path()],
) -> ReportDetailResponse:
    """Get a report with its line items."""
    report, lines = await controller.get_report(report_id, caller)
    detail = ReportDetailResponse.model_validate(report)
    detail.lines = [LineResponse.model_validate(line) for line in lines]
    return detail


# ============================================================================
# Line maintenance
# ============================================================================


@router.post(
    "/{report_id}/lines",
    response_model=TransitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def add_line(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    report_id: Annotated[UUID, Path()],
    payload: LineCreate,
) -> TransitionResponse:
    """Append a draft line to the caller's report."""
    result = await controller.add_line(report_id, caller, payload.model_dump())
    await db.commit()
    return _transition_response(result)


@router.patch(
    "/{report_id}/lines/{line_id}",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def update_line(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    report_id: Annotated[UUID, Path()],
    line_id: Annotated[UUID, Path()],
    payload: LineUpdate,
) -> TransitionResponse:
    """Edit a line; it returns to draft."""
    result = await controller.update_line(
        report_id, line_id, caller, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return _transition_response(result)


# ============================================================================
# Transitions
# ============================================================================


@router.post(
    "/{report_id}/lines/{line_id}/review",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def review_line(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
    report_id: Annotated[UUID, Path()],
    line_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> TransitionResponse:
    """Approve or reject one submitted line; the employee is emailed after commit."""
    result = await controller.execute(
        report_id,
        caller,
        ReviewLineCommand(line_id=line_id, action=payload.action, reason=payload.reason),
    )
    await db.commit()
    _schedule_notification(result, dispatcher, background_tasks)
    return _transition_response(result)


@router.post(
    "/{report_id}/submit",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def submit_report(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
    report_id: Annotated[UUID, Path()],
) -> TransitionResponse:
    """Submit a report for review.

    The reviewer email is sent after the transaction commits.
    """
    result = await controller.execute(report_id, caller, SubmitCommand())
    await db.commit()
    _schedule_notification(result, dispatcher, background_tasks)
    return _transition_response(result)


@router.post(
    "/{report_id}/finalize",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def finalize_report(
    db: DbSession,
    controller: Controller,
    caller: Caller,
    dispatcher: Dispatcher,
    background_tasks: BackgroundTasks,
    report_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> TransitionResponse:
    """Approve or reject a report whose lines are all approved."""
    result = await controller.execute(
        report_id,
        caller,
        FinalizeCommand(action=payload.action, reason=payload.reason),
    )
    await db.commit()
    _schedule_notification(result, dispatcher, background_tasks)
    return _transition_response(result)
