import smtplib
import logging
from email.message import EmailMessage
from typing import Optional

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when the mail relay rejects or cannot take a message."""


class Mailer:
    """Send HTML mail through an SMTP relay."""

    def __init__(self, settings: Optional[Settings] = None, smtp_class=smtplib.SMTP):
        self.settings = settings or get_settings()
        self._smtp_class = smtp_class

    @property
    def configured(self) -> bool:
        return bool(self.settings.email_host and self.settings.email_sender)

    def build_message(self, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.email_sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        if not self.configured:
            raise MailError("Mail relay is not configured (EMAIL_HOST / EMAIL_USER)")

        message = self.build_message(to, subject, html, text)
        settings = self.settings
        try:
            with self._smtp_class(settings.email_host, settings.email_port, timeout=60) as smtp:
                if settings.email_use_tls:
                    smtp.starttls()
                if settings.email_user and settings.email_password:
                    smtp.login(settings.email_user, settings.email_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"Failed to send mail to {to}: {e}") from e

        logger.info(f"Sent '{subject}' to {to}")
