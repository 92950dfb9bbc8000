"""Email transport sinks."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from approval_engine.config import Settings

logger = logging.getLogger(__name__)


class EmailSink(Protocol):
    """Accepts a rendered message for one recipient. Raises on failure."""

    async def send(self, to: str, subject: str, html: str) -> None:
        ...


class SmtpEmailSink:
    """Deliver HTML email through an SMTP relay.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS.
    The blocking smtplib session runs in a worker thread.
    """

    def __init__(self, settings: Settings, timeout: float = 10.0):
        if not settings.smtp_configured:
            raise ValueError("SMTP_HOST, SMTP_USER and SMTP_PASS must be set")
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = f'"{settings.email_from_name}" <{settings.email_from}>'
        self.reply_to = settings.email_reply_to or settings.email_from
        self.timeout = timeout

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg["Reply-To"] = self.reply_to
        msg.set_content("This message requires an HTML-capable email client.")
        msg.add_alternative(html, subtype="html")
        return msg

    async def send(self, to: str, subject: str, html: str) -> None:
        msg = self.build_message(to, subject, html)
        await asyncio.to_thread(self._send_blocking, msg)

    def _send_blocking(self, msg: EmailMessage) -> None:
        use_ssl = self.port == 465
        smtp_cls = smtplib.SMTP_SSL if use_ssl else smtplib.SMTP

        with smtp_cls(self.host, self.port, timeout=self.timeout) as smtp:
            if not use_ssl:
                smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(msg)
        logger.info("Sent email to %s: %s", msg["To"], msg["Subject"])
