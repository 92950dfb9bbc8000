"""SQLAlchemy ORM models."""

from approval_engine.models.base import Base, TimestampMixin
from approval_engine.models.employee import Employee
from approval_engine.models.report import Report, ReportLine

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "Report",
    "ReportLine",
]
