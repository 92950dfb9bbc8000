"""Notification dispatcher: render, send, and record the outcome."""

from __future__ import annotations

import logging

from approval_engine.metrics import ApprovalMetrics
from approval_engine.notifications.render import EmailRenderer
from approval_engine.notifications.sinks import EmailSink
from approval_engine.notifications.types import Notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Turns a Notification into a delivered email.

    ``dispatch`` never raises: failures are logged and counted, and the
    boolean result tells the caller whether the email went out. A dispatcher
    without a sink skips every send.
    """

    def __init__(
        self,
        renderer: EmailRenderer,
        sink: EmailSink | None,
        metrics: ApprovalMetrics | None = None,
    ):
        self.renderer = renderer
        self.sink = sink
        self.metrics = metrics or ApprovalMetrics()

    async def dispatch(self, notification: Notification) -> bool:
        event = notification.event.value

        if self.sink is None:
            logger.warning(
                "SMTP is not configured; skipping %s email for report %s",
                event,
                notification.report_id,
            )
            self.metrics.inc("approval_notifications_total", event=event, outcome="skipped")
            return False

        try:
            email = self.renderer.render(notification)
            await self.sink.send(notification.recipient, email.subject, email.html)
        except Exception:
            logger.exception(
                "Failed to send %s email for report %s to %s",
                event,
                notification.report_id,
                notification.recipient,
            )
            self.metrics.inc("approval_notifications_total", event=event, outcome="failed")
            return False

        logger.info(
            "Sent %s email for report %s to %s",
            event,
            notification.report_id,
            notification.recipient,
        )
        self.metrics.inc("approval_notifications_total", event=event, outcome="sent")
        return True
