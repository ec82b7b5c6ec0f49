from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from clinic.config import Settings

logger = logging.getLogger(__name__)


class Mailer:
    """Send single HTML messages and report success as a boolean.

    ``local`` hands the message to the host's MTA without authentication,
    ``smtp`` talks to an external relay with STARTTLS and credentials. Both
    are single attempts; failures are logged, never raised.
    """

    def __init__(self, config: Settings):
        self.enabled = config.email_enabled
        self.transport = config.mail_transport
        self.from_addr = config.email_from_addr
        self.timeout = config.smtp_timeout
        if self.transport == "smtp":
            self.host = config.smtp_host
            self.port = config.smtp_port
            self.user = config.smtp_username
            self.passwd = config.smtp_password
            self.use_starttls = config.smtp_starttls
        else:
            self.host = config.local_mta_host
            self.port = config.local_mta_port
            self.user = None
            self.passwd = None
            self.use_starttls = False

    def build_message(
        self,
        subject: str,
        body_html: str,
        to_addr: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((from_name, self.from_addr))
        msg["To"] = to_addr
        if reply_to:
            msg["Reply-To"] = reply_to
        msg["Subject"] = subject
        msg.set_content(body_html, subtype="html", charset="utf-8")
        return msg

    def deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_starttls:
                context = ssl.create_default_context()
                smtp.starttls(context=context)
            if self.user:
                smtp.login(self.user, self.passwd or "")
            smtp.send_message(msg)

    def send(
        self,
        subject: str,
        body_html: str,
        to_addr: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> bool:
        if not self.enabled:
            logger.info("Email disabled; skipping message to %s", to_addr)
            return False

        try:
            msg = self.build_message(subject, body_html, to_addr, from_name, reply_to)
            self.deliver(msg)
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed: %s", exc)
            return False
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            logger.error(
                "Failed to send email via %s:%s: %s",
                self.host,
                self.port,
                exc,
                extra={"error_type": type(exc).__name__},
            )
            return False
        logger.info("Email sent", extra={"to": to_addr, "transport": self.transport})
        return True
