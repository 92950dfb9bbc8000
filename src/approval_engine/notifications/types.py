"""Notification payloads handed from the controller to the dispatcher."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class NotificationEvent(str, Enum):
    """Events that can produce an email."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Notification:
    """Everything a template needs, plus the recipient address."""

    event: NotificationEvent
    report_id: UUID
    recipient: str
    employee_name: str
    report_title: str
    period: str
    report_type: str = "expense"
    reason: str | None = None
    total_amount: Decimal | None = None


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and HTML body ready for a sink."""

    subject: str
    html: str


def period_label(period_start: datetime.date | None, fallback: str) -> str:
    """Render a period as ``Mon YYYY`` (e.g. ``Nov 2025``)."""
    if period_start is None:
        return fallback
    return period_start.strftime("%b %Y")
