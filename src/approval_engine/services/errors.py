"""Error taxonomy for approval operations.

Every error carries a stable ``kind`` and the HTTP status the API layer
renders it with. Precondition errors are raised before any write.
"""

from __future__ import annotations


class ApprovalError(Exception):
    """Base class for all approval workflow errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Render as the ``{"error": ..., "kind": ...}`` response body."""
        return {"error": self.message, "kind": self.kind}


class Unauthenticated(ApprovalError):
    """No resolvable caller identity."""

    kind = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Not authenticated."):
        super().__init__(message)


class Forbidden(ApprovalError):
    """Caller is not allowed to act on the resource."""

    kind = "forbidden"
    status_code = 403


class NotFound(ApprovalError):
    """Report or line does not exist."""

    kind = "not_found"
    status_code = 404


class ValidationError(ApprovalError):
    """Input or state precondition failed."""

    kind = "validation"
    status_code = 400


class ConflictError(ApprovalError):
    """Aggregate status changed between read and conditional write."""

    kind = "conflict"
    status_code = 409

    def __init__(self, report_id: object, expected: str, actual: str | None = None):
        self.report_id = report_id
        self.expected = expected
        self.actual = actual
        msg = f"Report {report_id} changed concurrently (expected status '{expected}'"
        if actual:
            msg += f", found '{actual}'"
        super().__init__(msg + ").")


class StoreError(ApprovalError):
    """Underlying store call failed."""

    kind = "store"
    status_code = 500


class StoreTimeout(StoreError):
    """Store call exceeded its time bound."""

    kind = "timeout"
    status_code = 504

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Store call '{operation}' timed out after {timeout:g}s.")
