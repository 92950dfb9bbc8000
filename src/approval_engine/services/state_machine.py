"""Approval status values, derivation and line transition rules."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol, Union

from approval_engine.services.errors import ValidationError


class Status(str, Enum):
    """Status values shared by line items and report aggregates."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# Lines and reports use the same closed set of values.
LineStatus = Status
ReportStatus = Status


class FinalizeAction(str, Enum):
    """Reviewer decision for a report or a single line."""

    APPROVE = "approve"
    REJECT = "reject"


class HasStatus(Protocol):
    status: str


StatusLike = Union[str, Status, HasStatus]


def _coerce(item: StatusLike) -> Status:
    value = item if isinstance(item, str) else item.status
    try:
        return Status(value)
    except ValueError:
        raise ValueError(f"Unknown status: {value!r}") from None


def derive_status(lines: Iterable[StatusLike]) -> Status:
    """Roll line statuses up into one report status.

    First match wins:
    1. no lines -> draft
    2. every line draft -> draft
    3. every line approved -> approved
    4. any line submitted -> submitted
    5. any line rejected -> rejected
    6. otherwise -> draft

    Submitted dominates rejected: a report is still awaiting a decision while
    any line is submitted. Accepts raw status values or objects with a
    ``status`` attribute.
    """
    statuses = [_coerce(item) for item in lines]

    if not statuses:
        return Status.DRAFT
    if all(s == Status.DRAFT for s in statuses):
        return Status.DRAFT
    if all(s == Status.APPROVED for s in statuses):
        return Status.APPROVED
    if Status.SUBMITTED in statuses:
        return Status.SUBMITTED
    if Status.REJECTED in statuses:
        return Status.REJECTED
    # Mixed approved/draft lines.
    return Status.DRAFT


class InvalidTransitionError(ValidationError):
    """Raised when an invalid line status transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class LineStateMachine:
    """State machine for line item status transitions.

    Allowed transitions:
    - draft → submitted
    - rejected → submitted (resubmission)
    - submitted → approved | rejected (reviewer)
    - submitted | approved | rejected → draft (owner edits the line)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        Status.DRAFT: [Status.SUBMITTED],
        Status.SUBMITTED: [Status.APPROVED, Status.REJECTED, Status.DRAFT],
        Status.APPROVED: [Status.DRAFT],
        Status.REJECTED: [Status.SUBMITTED, Status.DRAFT],
    }

    # Statuses moved to submitted when the parent report is submitted
    SUBMITTABLE = {Status.DRAFT, Status.REJECTED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            allowed = cls.get_next_statuses(from_status)
            reason = f"allowed: {', '.join(allowed)}" if allowed else "no transitions allowed"
            raise InvalidTransitionError(
                getattr(from_status, "value", from_status),
                getattr(to_status, "value", to_status),
                reason,
            )

    @classmethod
    def is_submittable(cls, status: str) -> bool:
        """Check if a line moves to submitted when its report is submitted."""
        return status in cls.SUBMITTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def all_approved(cls, lines: Iterable[StatusLike]) -> bool:
        """Finalize gate: true only for a non-empty set of approved lines."""
        statuses = [_coerce(item) for item in lines]
        return bool(statuses) and all(s == Status.APPROVED for s in statuses)
