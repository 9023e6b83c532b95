import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from natours.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Plain-text mail delivery over SMTP.

    ``smtplib`` blocks, so delivery runs in a worker thread to keep the
    event loop free. Transport failures propagate as ``smtplib.SMTPException``
    or ``OSError``.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: str = "noreply@localhost",
        timeout_seconds: int = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.timeout_seconds = timeout_seconds

    def _build_message(self, to: str, subject: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            if self.username and self.password:
                smtp.starttls()
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send_email(self, to: str, subject: str, text: str) -> None:
        message = self._build_message(to, subject, text)
        await asyncio.to_thread(self._deliver, message)
        logger.info(f"Email sent to {to}: {subject}")


# Global email service instance
email_service = EmailService(
    host=settings.email_host,
    port=settings.email_port,
    username=settings.email_username,
    password=settings.email_password,
    from_address=settings.email_from_address,
)
