"""Jinja2 rendering of notification emails."""

from __future__ import annotations

import datetime
from decimal import Decimal

from jinja2 import Environment, PackageLoader, select_autoescape

from approval_engine.notifications.types import (
    Notification,
    NotificationEvent,
    RenderedEmail,
)

_TEMPLATES = {
    NotificationEvent.SUBMITTED: "submitted.html",
    NotificationEvent.APPROVED: "approved.html",
    NotificationEvent.REJECTED: "rejected.html",
}


def _currency(value: Decimal | None) -> str:
    if value is None:
        return "$0.00"
    return f"${value:,.2f}"


class EmailRenderer:
    """Builds subject lines, deep links and HTML for each event."""

    def __init__(self, app_url: str, company_name: str = "West End Workforce"):
        self.app_url = app_url.rstrip("/")
        self.company_name = company_name
        self.env = Environment(
            loader=PackageLoader("approval_engine", "notifications/templates"),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["currency"] = _currency

    def report_url(self, notification: Notification) -> str:
        """Deep link: reviewers land on the manager view, employees on theirs."""
        rid = notification.report_id
        if notification.report_type == "timesheet":
            if notification.event == NotificationEvent.SUBMITTED:
                return f"{self.app_url}/manager/timesheets/{rid}"
            return f"{self.app_url}/timesheet/{rid}"
        if notification.event == NotificationEvent.SUBMITTED:
            return f"{self.app_url}/manager/expense/{rid}"
        return f"{self.app_url}/expense/{rid}"

    def subject(self, notification: Notification) -> str:
        noun = "timesheet" if notification.report_type == "timesheet" else "expense report"
        if notification.event == NotificationEvent.SUBMITTED:
            return f"New {noun} submitted: {notification.report_title}"
        if notification.event == NotificationEvent.APPROVED:
            return f"Your {noun} has been approved"
        return f"Your {noun} has been rejected"

    def render(self, notification: Notification) -> RenderedEmail:
        template = self.env.get_template(_TEMPLATES[notification.event])
        noun = "Timesheet" if notification.report_type == "timesheet" else "Expense Report"
        html = template.render(
            n=notification,
            noun=noun,
            company_name=self.company_name,
            report_url=self.report_url(notification),
            year=datetime.date.today().year,
        )
        return RenderedEmail(subject=self.subject(notification), html=html)
