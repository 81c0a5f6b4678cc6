"""
Tag Mailer

Sends the "You were tagged in NoteGrid" e-mail over SMTP with SSL.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Callable, Optional

logger = logging.getLogger("notegrid.server.mailer")

SUBJECT = "You were tagged in NoteGrid"
SIGNATURE = "— NoteGrid"


class MailerNotConfigured(RuntimeError):
    """SMTP user or password missing"""
    pass


def compose_body(
    message: str,
    tagged_user: Optional[str] = None,
    tagged_by: Optional[str] = "You",
    context: Optional[str] = "Discussion Panel",
) -> str:
    tagged_user = tagged_user if isinstance(tagged_user, str) else ""
    tagged_by = tagged_by if isinstance(tagged_by, str) else "You"
    context = context if isinstance(context, str) else "Discussion Panel"

    return "\n".join([
        f"Hi {tagged_user}," if tagged_user else "Hi,",
        "",
        f"{tagged_by} tagged you in NoteGrid.",
        "",
        f"Context: {context}",
        "",
        "Message:",
        message,
        "",
        SIGNATURE,
    ])


class TagMailer:
    """
    Args:
        user: SMTP login, also used as the sender address.
        password: SMTP password (app password for Gmail).
        smtp_host: SMTP server.
        smtp_port: SSL port.
        smtp_factory: SMTP connection class; smtplib.SMTP_SSL by default.
    """

    def __init__(
        self,
        user: str = "",
        password: str = "",
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 465,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP_SSL,
    ):
        self.user = user
        self.password = password
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self._smtp_factory = smtp_factory

    @classmethod
    def from_config(cls, email_config) -> "TagMailer":
        return cls(
            user=email_config.user,
            password=email_config.password,
            smtp_host=email_config.smtp_host,
            smtp_port=email_config.smtp_port,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def compose(
        self,
        email: str,
        message: str,
        tagged_user: Optional[str] = None,
        tagged_by: Optional[str] = "You",
        context: Optional[str] = "Discussion Panel",
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = SUBJECT
        msg["From"] = self.user
        msg["To"] = email
        msg.set_content(compose_body(message, tagged_user, tagged_by, context))
        return msg

    def send(
        self,
        email: str,
        message: str,
        tagged_user: Optional[str] = None,
        tagged_by: Optional[str] = "You",
        context: Optional[str] = "Discussion Panel",
    ) -> None:
        """
        Deliver one notification.

        Raises:
            MailerNotConfigured: credentials missing.
            smtplib.SMTPException / OSError: delivery failed.
        """
        if not self.is_configured:
            raise MailerNotConfigured("Email credentials not configured")

        msg = self.compose(email, message, tagged_user, tagged_by, context)
        with self._smtp_factory(self.smtp_host, self.smtp_port) as server:
            server.login(self.user, self.password)
            server.send_message(msg)
        logger.info("Tag notification sent to %s", email)
