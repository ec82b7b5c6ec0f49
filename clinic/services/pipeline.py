"""Contact submission pipeline.

Stages run strictly in order and any of them may end the request:

    method/origin guard -> rate limiter -> spam filter -> validator
        -> persistence -> notifier -> submission audit log

Terminal failures are raised as ``ContactError`` subclasses; the HTTP layer
turns them into ``{"success": false, "message": ...}`` responses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from clinic.config import Settings
from clinic.errors import TotalFailure
from clinic.schemas.contact import ContactResponse, Submission
from clinic.security.origin import OriginGuard
from clinic.security.rate_limit import (
    InMemoryRateWindowStore,
    RateLimiter,
    RateWindowStore,
    SqlRateWindowStore,
)
from clinic.services.audit_log import JsonLineLog
from clinic.services.mailer import Mailer
from clinic.services.notifier import NotificationResult, Notifier
from clinic.services.persistence import SubmissionRepository
from clinic.services.spam_filter import SpamFilter
from clinic.services.validation import validate_submission

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thank you for your message! We will contact you within 24 hours."
SPAM_MESSAGE = "Thank you for your message!"
PREFLIGHT_MESSAGE = "OK"


@dataclass
class ContactRequest:
    """Raw intake: everything the pipeline needs from one HTTP request."""

    method: str
    client_ip: str
    fields: Mapping[str, str] = field(default_factory=dict)
    origin: str | None = None
    referer: str | None = None
    user_agent: str = ""


class ContactPipeline:
    def __init__(
        self,
        origin_guard: OriginGuard,
        rate_limiter: RateLimiter,
        spam_filter: SpamFilter,
        repository: SubmissionRepository,
        notifier: Notifier,
        submission_log: JsonLineLog,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.origin_guard = origin_guard
        self.rate_limiter = rate_limiter
        self.spam_filter = spam_filter
        self.repository = repository
        self.notifier = notifier
        self.submission_log = submission_log
        self.now = now

    def process(self, request: ContactRequest) -> ContactResponse:
        if self.origin_guard.check_method(request.method):
            return ContactResponse(success=True, message=PREFLIGHT_MESSAGE)
        self.origin_guard.check(request.origin, request.referer)
        self.rate_limiter.hit(request.client_ip)

        submitted_at = self.now()
        if self.spam_filter.is_spam(request.fields):
            self.spam_filter.record(
                request.fields, request.client_ip, request.user_agent, submitted_at
            )
            return ContactResponse(success=True, message=SPAM_MESSAGE)

        submission = validate_submission(
            request.fields, request.client_ip, request.user_agent, submitted_at
        )
        return self.deliver(submission)

    def deliver(self, submission: Submission) -> ContactResponse:
        """Persist and notify; succeed if EITHER path worked."""
        try:
            persisted = self.repository.save(submission)
        except Exception as exc:
            logger.exception("Contact form error while saving: %s", exc)
            persisted = False
        try:
            notification = self.notifier.notify(submission)
        except Exception as exc:
            logger.exception("Contact form error while notifying: %s", exc)
            notification = NotificationResult(
                clinic_sent=False, doctor_sent=None, auto_reply_sent=False
            )

        if not (persisted or notification.clinic_alert_delivered):
            logger.error(
                "Contact form error: failed to process submission",
                extra={
                    "client_ip": submission.ip_address,
                    "persisted": persisted,
                    "clinic_notified": notification.clinic_alert_delivered,
                },
            )
            raise TotalFailure()

        logger.info(
            "Contact submission accepted",
            extra={
                "client_ip": submission.ip_address,
                "persisted": persisted,
                "clinic_notified": notification.clinic_alert_delivered,
                "auto_reply_sent": notification.auto_reply_sent,
            },
        )
        self.submission_log.try_append(submission.audit_record())
        return ContactResponse(success=True, message=SUCCESS_MESSAGE)


def build_rate_store(
    config: Settings, session_factory: sessionmaker[Session] | None
) -> RateWindowStore:
    if config.rate_limit_backend == "database" and session_factory is not None:
        return SqlRateWindowStore(session_factory)
    return InMemoryRateWindowStore()


def build_pipeline(
    config: Settings,
    session_factory: sessionmaker[Session] | None,
    mailer: Mailer | None = None,
    rate_store: RateWindowStore | None = None,
) -> ContactPipeline:
    """Wire every stage from an explicit ``Settings`` instance."""
    return ContactPipeline(
        origin_guard=OriginGuard(
            config.allowed_origins, config.allowed_referer_domains
        ),
        rate_limiter=RateLimiter(
            rate_store or build_rate_store(config, session_factory),
            max_submissions=config.rate_limit_max_submissions,
            window_seconds=config.rate_limit_window_seconds,
        ),
        spam_filter=SpamFilter(config.trap_fields, JsonLineLog(config.spam_log_path)),
        repository=SubmissionRepository(
            session_factory, JsonLineLog(config.fallback_log_path)
        ),
        notifier=Notifier(mailer or Mailer(config), config),
        submission_log=JsonLineLog(config.submissions_log_path),
    )
