"""Notification rendering and delivery."""

from approval_engine.notifications.dispatcher import NotificationDispatcher
from approval_engine.notifications.render import EmailRenderer
from approval_engine.notifications.sinks import EmailSink, SmtpEmailSink
from approval_engine.notifications.types import (
    Notification,
    NotificationEvent,
    RenderedEmail,
    period_label,
)

__all__ = [
    "NotificationDispatcher",
    "EmailRenderer",
    "EmailSink",
    "SmtpEmailSink",
    "Notification",
    "NotificationEvent",
    "RenderedEmail",
    "period_label",
]
