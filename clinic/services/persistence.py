"""Durable recording of contact submissions.

The relational store is the system of record. When it cannot be reached the
submission is appended to a JSON-lines fallback file instead, so a database
outage never costs an inquiry.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from clinic.models.contact_submission import ContactSubmission
from clinic.schemas.contact import Submission
from clinic.services.audit_log import JsonLineLog

logger = logging.getLogger(__name__)


class SubmissionRepository:
    def __init__(
        self,
        session_factory: sessionmaker[Session] | None,
        fallback_log: JsonLineLog,
    ) -> None:
        self.session_factory = session_factory
        self.fallback_log = fallback_log

    def save_to_database(self, submission: Submission) -> bool:
        """Insert one row; return False (and log) on any database error."""
        if self.session_factory is None:
            return False
        row = ContactSubmission(
            name=submission.name,
            email=submission.email,
            phone=submission.phone,
            subject=submission.subject,
            message=submission.message,
            ip_address=submission.ip_address,
            user_agent=submission.user_agent,
            created_at=submission.submitted_at,
        )
        try:
            with self.session_factory() as db:
                try:
                    db.add(row)
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.error(
                "Database error while saving contact submission",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            return False
        return True

    def save_to_file(self, submission: Submission) -> bool:
        return self.fallback_log.try_append(
            {"timestamp": submission.timestamp, "data": submission.as_record()}
        )

    def save(self, submission: Submission) -> bool:
        """Record the submission; True if either path succeeded."""
        if self.save_to_database(submission):
            return True
        logger.warning("Falling back to file storage for contact submission")
        return self.save_to_file(submission)
