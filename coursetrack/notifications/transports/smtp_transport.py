from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from coursetrack.config import settings
from coursetrack.notifications.models import MailResult
from coursetrack.notifications.transports.base import MailTransport


logger = logging.getLogger(__name__)


class SmtpTransport(MailTransport):
    name = "smtp"

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        start_tls: bool | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.host = host or settings.smtp_host
        self.port = int(port or settings.smtp_port)
        self.username = username if username is not None else settings.smtp_user
        self.password = password if password is not None else settings.smtp_password
        self.start_tls = settings.smtp_start_tls if start_tls is None else start_tls
        self.timeout_seconds = float(timeout_seconds or settings.smtp_timeout_seconds)

    def build_message(self, from_address: str, to_addresses: list[str], subject: str, html_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = from_address
        message["To"] = ", ".join(to_addresses)
        message["Subject"] = subject
        message.attach(MIMEText(html_body, "html"))
        return message

    async def send(self, from_address: str, to_addresses: list[str], subject: str, html_body: str) -> MailResult:
        if not to_addresses:
            return MailResult(ok=False, error="no recipients")
        message = self.build_message(from_address, to_addresses, subject, html_body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.start_tls,
                timeout=self.timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as exc:
            logger.error("smtp_send_failed to=%s subject=%s error=%s", ",".join(to_addresses), subject, exc)
            return MailResult(ok=False, error=str(exc) or exc.__class__.__name__)
        logger.info("smtp_send_ok to=%s subject=%s", ",".join(to_addresses), subject)
        return MailResult(ok=True)
