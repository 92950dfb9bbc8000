"""Approval services."""

from approval_engine.services.errors import (
    ApprovalError,
    ConflictError,
    Forbidden,
    NotFound,
    StoreError,
    StoreTimeout,
    Unauthenticated,
    ValidationError,
)
from approval_engine.services.sql_store import SqlStore
from approval_engine.services.state_machine import (
    FinalizeAction,
    InvalidTransitionError,
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
from approval_engine.services.transition_service import (
    CallerIdentity,
    FinalizeCommand,
    ReviewLineCommand,
    SubmitCommand,
    TransitionController,
    TransitionResult,
)

__all__ = [
    "ApprovalError",
    "ConflictError",
    "Forbidden",
    "NotFound",
    "StoreError",
    "StoreTimeout",
    "Unauthenticated",
    "ValidationError",
    "SqlStore",
    "FinalizeAction",
    "InvalidTransitionError",
    "LineStateMachine",
    "Status",
    "derive_status",
    "EmployeeDirectory",
    "EmployeeRecord",
    "LineItemStore",
    "LineRecord",
    "ReportRecord",
    "ReportStore",
    "CallerIdentity",
    "FinalizeCommand",
    "ReviewLineCommand",
    "SubmitCommand",
    "TransitionController",
    "TransitionResult",
]
