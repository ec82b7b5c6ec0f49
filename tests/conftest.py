"""Test fixtures for the contact pipeline, database, and API."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Set DATABASE_URL and BACKUPS_DIR *before* importing clinic modules so the
# module-level engine and settings never point at production paths.
os.environ.setdefault("DATABASE_URL", "sqlite:///test_app.db")
os.environ.setdefault(
    "BACKUPS_DIR", str(Path(tempfile.gettempdir()) / "clinic-test-backups")
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from clinic.config import Settings  # noqa: E402
from clinic.database import build_engine, get_db, init_database  # noqa: E402
from clinic.main import app  # noqa: E402
from clinic.security.rate_limit import limiter  # noqa: E402
from clinic.services.pipeline import build_pipeline  # noqa: E402
from tests.fakes import FakeMailer  # noqa: E402

# The burst limiter shares state across tests; the pipeline's own limiter is
# rebuilt per test and covered explicitly.
limiter.enabled = False


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        database_url=f"sqlite:///{tmp_path / 'contact.db'}",
        backups_dir=str(tmp_path / "backups"),
        clinic_email="contact@clinic.in",
        doctor_email="doctor@clinic.in",
        email_from_addr="noreply@clinic.in",
    )


@pytest.fixture
def session_factory(test_settings):
    engine = build_engine(test_settings.resolved_database_url)
    init_database(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def broken_session_factory(tmp_path):
    """Session factory whose database file can never be opened."""
    missing = tmp_path / "no-such-dir" / "nested" / "contact.db"
    engine = build_engine(f"sqlite:///{missing}")
    missing.parent.rmdir()
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def pipeline(test_settings, session_factory, mailer):
    return build_pipeline(test_settings, session_factory, mailer=mailer)


@pytest.fixture
def client(pipeline, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.state.pipeline = pipeline
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)
    app.state.pipeline = None


@pytest.fixture
def valid_form() -> dict[str, str]:
    return {
        "name": "A",
        "email": "a@b.com",
        "phone": "",
        "subject": "S",
        "message": "M",
        "website": "",
    }
