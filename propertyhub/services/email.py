"""Email sending service.

Supports two backends:
- SMTP via aiosmtplib (production)
- Log-only (development / testing): logs the email instead of sending

Set EMAIL_BACKEND=smtp and configure SMTP_* settings for production.
Default is EMAIL_BACKEND=log which just logs the message.
"""

import logging
from typing import Protocol

from propertyhub.config import settings

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str, text: str) -> None: ...


class LogEmailSender:
    """Development sender: logs email content instead of sending."""

    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        logger.info("EMAIL to=%s subject=%s\n%s", to, subject, text)


class SmtpEmailSender:
    """Production sender: sends a multipart (text + HTML) message via SMTP."""

    async def send(self, to: str, subject: str, html: str, text: str) -> None:
        import aiosmtplib
        from email.headerregistry import Address
        from email.message import EmailMessage

        msg = EmailMessage()
        msg["From"] = str(Address(settings.smtp_from_name, addr_spec=settings.smtp_from_address))
        msg["To"] = to
        msg["Reply-To"] = settings.smtp_reply_to
        msg["Subject"] = subject
        msg.set_content(text)
        msg.add_alternative(html.strip(), subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )


def get_email_sender() -> EmailSender:
    if settings.email_backend == "smtp":
        return SmtpEmailSender()
    return LogEmailSender()
