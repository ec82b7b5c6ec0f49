"""Templated email notifications for new inquiries."""

from __future__ import annotations

import html
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from email.utils import formataddr
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from clinic.config import Settings
from clinic.schemas.contact import Submission

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


class MailSender(Protocol):
    def send(
        self,
        subject: str,
        body_html: str,
        to_addr: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> bool: ...


def _header_text(value: str) -> str:
    """Decode entities and fold whitespace so the value is safe in a header."""
    return " ".join(html.unescape(value).split())


def build_template_env() -> Environment:
    # Autoescape stays off: submission fields are HTML-encoded upstream and
    # would otherwise be double-encoded.
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


@dataclass
class NotificationResult:
    clinic_sent: bool
    doctor_sent: bool | None
    auto_reply_sent: bool

    @property
    def clinic_alert_delivered(self) -> bool:
        """The clinic side counts as notified if either inbox got the alert."""
        return self.clinic_sent or bool(self.doctor_sent)


class Notifier:
    """Render and dispatch the clinic alert and the submitter auto-reply."""

    def __init__(
        self,
        mailer: MailSender,
        config: Settings,
        env: Environment | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.mailer = mailer
        self.config = config
        self.env = env or build_template_env()
        self.now = now

    def _context(self, submission: Submission) -> dict[str, object]:
        cfg = self.config
        return {
            "submission": submission,
            "current_year": self.now().year,
            "clinic_name": cfg.clinic_name,
            "clinic_tagline": cfg.clinic_tagline,
            "clinic_address": cfg.clinic_address,
            "clinic_locality": cfg.clinic_locality,
            "clinic_hours": cfg.clinic_hours,
            "clinic_phone": cfg.clinic_phone,
            "clinic_email": cfg.clinic_email,
            "emergency_phone": cfg.emergency_phone,
            "doctor_name": cfg.doctor_name,
            "doctor_credentials": cfg.doctor_credentials,
        }

    def render_clinic_alert(self, submission: Submission) -> str:
        template = self.env.get_template("email/clinic_alert.html")
        return template.render(**self._context(submission))

    def render_auto_reply(self, submission: Submission) -> str:
        template = self.env.get_template("email/auto_reply.html")
        return template.render(**self._context(submission))

    def clinic_alert_subject(self, submission: Submission) -> str:
        return "New Contact Form Submission: " + _header_text(submission.subject)

    def auto_reply_subject(self) -> str:
        return f"Thank you for contacting {self.config.clinic_name}"

    def notify_clinic(self, submission: Submission) -> tuple[bool, bool | None]:
        """Send the alert to the clinic inbox, and the doctor's if distinct."""
        subject = self.clinic_alert_subject(submission)
        body = self.render_clinic_alert(submission)
        reply_to = formataddr((_header_text(submission.name), submission.email))
        clinic_addr = self.config.clinic_email
        doctor_addr = self.config.doctor_email

        clinic_sent = self.mailer.send(
            subject,
            body,
            to_addr=clinic_addr,
            from_name=self.config.website_sender_name,
            reply_to=reply_to,
        )
        doctor_sent: bool | None = None
        if doctor_addr and doctor_addr != clinic_addr:
            doctor_sent = self.mailer.send(
                subject,
                body,
                to_addr=doctor_addr,
                from_name=self.config.website_sender_name,
                reply_to=reply_to,
            )
        return clinic_sent, doctor_sent

    def send_auto_reply(self, submission: Submission) -> bool:
        return self.mailer.send(
            self.auto_reply_subject(),
            self.render_auto_reply(submission),
            to_addr=submission.email,
            from_name=self.config.email_from_name,
            reply_to=self.config.clinic_email,
        )

    def notify(self, submission: Submission) -> NotificationResult:
        clinic_sent, doctor_sent = self.notify_clinic(submission)
        auto_reply_sent = self.send_auto_reply(submission)
        result = NotificationResult(clinic_sent, doctor_sent, auto_reply_sent)
        if not result.clinic_alert_delivered:
            logger.warning("Clinic notification could not be delivered")
        if not auto_reply_sent:
            logger.warning("Auto-reply could not be delivered")
        return result
