"""
notify/mailer.py -- Outbound email for client project-request invitations.

Email is a black-box sink: callers hand over a message and learn only whether
delivery was accepted. With SMTP_HOST configured, messages go out over SMTP
(STARTTLS on the submission port, implicit TLS when SMTP_SECURE=true). Without
it, the mailer logs recipient and subject and drops the message, which is
what local development and the test suite want.

A delivery failure raises MailDeliveryError; the project-request route turns
that into a soft failure because the secure link already exists and can be
shared by hand.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from core.config import Settings

logger = logging.getLogger("workmesh.mailer")

_SMTP_TIMEOUT_SECONDS = 15


class MailDeliveryError(Exception):
    """The SMTP server could not be reached or refused the message."""


class Mailer:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self._settings.smtp_host)

    def send(self, message: EmailMessage) -> None:
        if not self.enabled:
            logger.info("SMTP not configured; not sending %r to %s", message["Subject"], message["To"])
            return
        s = self._settings
        smtp_cls = smtplib.SMTP_SSL if s.smtp_secure else smtplib.SMTP
        try:
            with smtp_cls(s.smtp_host, s.smtp_port, timeout=_SMTP_TIMEOUT_SECONDS) as smtp:
                if not s.smtp_secure:
                    smtp.starttls()
                if s.smtp_user:
                    smtp.login(s.smtp_user, s.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(str(exc)) from exc
        logger.info("Sent %r to %s", message["Subject"], message["To"])


def build_invitation(
    sender: str,
    recipient: str,
    company_name: str,
    form_url: str,
    client_name: Optional[str] = None,
) -> EmailMessage:
    """Compose the plain-text + HTML invitation to fill in the requirements form."""
    greeting = f"Hello {client_name}," if client_name else "Hello,"
    text_body = (
        f"{greeting}\n\n"
        f"{company_name} has invited you to submit your project requirements.\n\n"
        f"Open this link to fill out the form:\n{form_url}\n\n"
        "This link is unique and can only be used once.\n\n"
        "-- Work Mesh"
    )
    safe_company = html.escape(company_name)
    safe_url = html.escape(form_url, quote=True)
    html_body = (
        "<!DOCTYPE html><html><body style=\"font-family: sans-serif; color: #334155;\">"
        f"<p>{html.escape(greeting)}</p>"
        f"<p>{safe_company} has invited you to submit your project requirements.</p>"
        f"<p><a href=\"{safe_url}\">Open Project Requirements Form</a></p>"
        f"<p style=\"font-size: 12px;\">Or copy this link: {safe_url}</p>"
        "<p style=\"font-size: 12px;\">This link is unique and can only be used once.</p>"
        "</body></html>"
    )

    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = f"Submit your project requirements - {company_name}"
    message.set_content(text_body)
    message.add_alternative(html_body, subtype="html")
    return message
