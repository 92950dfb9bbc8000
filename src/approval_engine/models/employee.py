"""Employee directory model."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record, referenced by reports and used for notifications."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="SET NULL"),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'manager', 'admin')",
            name="employee_role_check",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return " ".join(p for p in (self.first_name, self.last_name) if p)
