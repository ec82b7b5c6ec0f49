"""Tests for clinic/services/pipeline.py: stage ordering and outcomes."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import func, select

from clinic.errors import (
    InvalidEmail,
    MethodNotAllowed,
    MissingFields,
    OriginRejected,
    RateLimited,
    TotalFailure,
)
from clinic.models.contact_submission import ContactSubmission
from clinic.services.pipeline import (
    PREFLIGHT_MESSAGE,
    SPAM_MESSAGE,
    SUCCESS_MESSAGE,
    ContactRequest,
    build_pipeline,
)
from tests.fakes import FakeMailer

ORIGIN = "http://localhost:3000"


def _request(fields=None, **overrides) -> ContactRequest:
    values = {
        "method": "POST",
        "client_ip": "8.8.8.8",
        "fields": fields
        if fields is not None
        else {"name": "A", "email": "a@b.com", "subject": "S", "message": "M"},
        "origin": ORIGIN,
        "referer": None,
        "user_agent": "pytest",
    }
    values.update(overrides)
    return ContactRequest(**values)


def _row_count(session_factory) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(ContactSubmission))


class TestHappyPath:
    def test_full_success(self, pipeline, mailer, session_factory):
        result = pipeline.process(_request())

        assert result.success is True
        assert result.message == SUCCESS_MESSAGE
        assert _row_count(session_factory) == 1
        assert mailer.recipients() == [
            "contact@clinic.in",
            "doctor@clinic.in",
            "a@b.com",
        ]
        audit = pipeline.submission_log.read()
        assert len(audit) == 1
        assert audit[0]["email"] == "a@b.com"
        assert audit[0]["ip"] == "8.8.8.8"
        assert set(audit[0]) == {"name", "email", "subject", "ip", "timestamp"}

    def test_stored_values_are_encoded(self, pipeline, session_factory):
        fields = {
            "name": "<b>A</b>",
            "email": "a@b.com",
            "subject": "S",
            "message": "<script>x</script>",
        }
        pipeline.process(_request(fields))
        with session_factory() as db:
            row = db.scalars(select(ContactSubmission)).one()
        assert row.name == "&lt;b&gt;A&lt;/b&gt;"
        assert row.message == "&lt;script&gt;x&lt;/script&gt;"

    def test_preflight_short_circuits(self, pipeline, mailer):
        result = pipeline.process(_request(method="OPTIONS", origin=None))
        assert result.success is True
        assert result.message == PREFLIGHT_MESSAGE
        assert mailer.sent == []


class TestRejections:
    def test_method(self, pipeline):
        with pytest.raises(MethodNotAllowed):
            pipeline.process(_request(method="GET"))

    def test_origin(self, pipeline, mailer):
        with pytest.raises(OriginRejected):
            pipeline.process(_request(origin="https://evil.example"))
        assert mailer.sent == []

    def test_origin_rejection_does_not_count(self, pipeline):
        for _ in range(10):
            with pytest.raises(OriginRejected):
                pipeline.process(_request(origin=None))
        pipeline.process(_request())

    def test_sixth_submission_rate_limited(self, pipeline, session_factory):
        for _ in range(5):
            assert pipeline.process(_request()).success
        with pytest.raises(RateLimited):
            pipeline.process(_request())
        assert _row_count(session_factory) == 5

    def test_validation_failures_count_toward_limit(self, pipeline):
        for _ in range(5):
            with pytest.raises(MissingFields):
                pipeline.process(_request({"name": "A"}))
        with pytest.raises(RateLimited):
            pipeline.process(_request())

    def test_invalid_email_stops_before_persistence(
        self, pipeline, mailer, session_factory
    ):
        fields = {"name": "A", "email": "nope", "subject": "S", "message": "M"}
        with pytest.raises(InvalidEmail):
            pipeline.process(_request(fields))
        assert _row_count(session_factory) == 0
        assert mailer.sent == []


class TestSpam:
    def test_honeypot_fakes_success(self, pipeline, mailer, session_factory):
        fields = {
            "name": "Bot",
            "email": "bot@b.com",
            "subject": "S",
            "message": "M",
            "website": "http://spam.example",
        }
        result = pipeline.process(_request(fields))

        assert result.success is True
        assert result.message == SPAM_MESSAGE
        assert _row_count(session_factory) == 0
        assert mailer.sent == []
        assert pipeline.submission_log.read() == []
        spam = pipeline.spam_filter.spam_log.read()
        assert len(spam) == 1
        assert spam[0]["data"]["website"] == "http://spam.example"

    def test_spam_skips_validation(self, pipeline):
        result = pipeline.process(_request({"honeypot": "x"}))
        assert result.message == SPAM_MESSAGE


class TestSuccessRule:
    """Accepted when either the database write or the clinic alert worked."""

    def _pipeline(self, config, session_factory, mailer):
        return build_pipeline(config, session_factory, mailer=mailer)

    def test_database_down_mail_up(self, test_settings, broken_session_factory):
        mailer = FakeMailer()
        pipeline = self._pipeline(test_settings, broken_session_factory, mailer)
        result = pipeline.process(_request())
        assert result.success is True
        assert pipeline.repository.fallback_log.statistics().count == 1

    def test_database_up_mail_down(self, test_settings, session_factory):
        pipeline = self._pipeline(
            test_settings, session_factory, FakeMailer(succeed=False)
        )
        assert pipeline.process(_request()).success is True
        assert _row_count(session_factory) == 1

    def test_only_file_fallback_and_no_mail(
        self, test_settings, broken_session_factory
    ):
        pipeline = self._pipeline(
            test_settings, broken_session_factory, FakeMailer(succeed=False)
        )
        assert pipeline.process(_request()).success is True

    def test_auto_reply_alone_is_not_enough(self, tmp_path, broken_session_factory):
        from clinic.config import Settings

        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = Settings(
            _env_file=None,
            backups_dir=str(blocker),
            clinic_email="contact@clinic.in",
            doctor_email="",
        )
        mailer = FakeMailer(fail_for={"contact@clinic.in"})
        pipeline = self._pipeline(config, broken_session_factory, mailer)

        with pytest.raises(TotalFailure) as exc_info:
            pipeline.process(_request())
        assert exc_info.value.message == (
            "Sorry, there was an error processing your request. "
            "Please try calling us directly."
        )
        assert "a@b.com" in mailer.recipients()

    def test_notifier_crash_after_save_still_succeeds(
        self, pipeline, session_factory, monkeypatch
    ):
        def explode(submission):
            raise RuntimeError("template missing")

        monkeypatch.setattr(pipeline.notifier, "notify", explode)
        result = pipeline.process(_request())
        assert result.success is True
        assert result.message == SUCCESS_MESSAGE
        assert _row_count(session_factory) == 1
        assert len(pipeline.submission_log.read()) == 1

    def test_notifier_crash_without_save_is_total_failure(
        self, test_settings, broken_session_factory, monkeypatch, tmp_path
    ):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = test_settings.model_copy(update={"backups_dir": str(blocker)})
        pipeline = self._pipeline(config, broken_session_factory, FakeMailer())

        def explode(submission):
            raise RuntimeError("template missing")

        monkeypatch.setattr(pipeline.notifier, "notify", explode)
        with pytest.raises(TotalFailure):
            pipeline.process(_request())
        assert pipeline.submission_log.read() == []


def test_submission_timestamp_comes_from_clock(pipeline):
    pipeline.now = lambda: datetime(2026, 10, 19, 8, 15, 0)
    pipeline.process(_request())
    assert pipeline.submission_log.read()[0]["timestamp"] == "2026-10-19 08:15:00"
