"""Application settings for the contact-form service."""

from __future__ import annotations

import json
from functools import cached_property
from pathlib import Path
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from sqlalchemy.engine import URL


def _split_list(value: str | list[str] | None) -> list[str]:
    """Normalize a comma separated or JSON list env value into a list."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    return []


class Settings(BaseSettings):
    """Central configuration entrypoint for the contact pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Observability
    log_level: str = "INFO"

    # Origin guard
    allowed_origins: Annotated[list[str], NoDecode] = [
        "https://www.anandampsychiatrycentre.in",
        "https://anandampsychiatrycentre.in",
        "http://localhost:3000",
        "http://localhost:8000",
    ]
    allowed_referer_domains: Annotated[list[str], NoDecode] = [
        "anandampsychiatrycentre.in",
        "localhost",
    ]

    # Spam
    trap_fields: Annotated[list[str], NoDecode] = ["website", "honeypot"]

    # Rate limiting
    rate_limit_max_submissions: int = 5
    rate_limit_window_seconds: int = 3600
    rate_limit_backend: Literal["memory", "database"] = "memory"
    burst_rate_limit: str = "20/minute"

    # Database
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL"),
    )
    db_host: str | None = None
    db_port: int | None = None
    db_name: str | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DB_ECHO", "SQL_ECHO"),
    )

    # Append-only logs
    backups_dir: str = "backups"
    fallback_log_name: str = "contact_submissions.log"
    spam_log_name: str = "spam_attempts.log"
    submissions_log_name: str = "submissions.log"

    # Email
    email_enabled: bool = True
    mail_transport: Literal["local", "smtp"] = "local"
    clinic_email: str = "contact@anandampsychiatrycentre.in"
    doctor_email: str | None = "dr.sharma@anandampsychiatrycentre.in"
    email_from_addr: str = "noreply@anandampsychiatrycentre.in"
    email_from_name: str = "Anandam Psychiatry Centre"
    website_sender_name: str = "Anandam Psychiatry Website"

    # Local MTA relay (the "direct" transport)
    local_mta_host: str = "localhost"
    local_mta_port: int = 25

    # SMTP relay
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_starttls: bool = True
    smtp_timeout: float = 10.0

    # Clinic details rendered into emails
    clinic_name: str = "Anandam Psychiatry Centre"
    clinic_tagline: str = "Where Good Things Are Going To Happen..."
    clinic_address: str = (
        "4/1, 1st Floor, Balraj Khanna Road, East Patel Nagar, New Delhi - 110008"
    )
    clinic_locality: str = "East Patel Nagar, New Delhi - 110008"
    clinic_hours: str = "Monday - Saturday, 10:00 AM - 8:00 PM"
    clinic_phone: str = "+91 95825 82707"
    emergency_phone: str = "+91 98765 43211"
    doctor_name: str = "Dr. Srikant Sharma"
    doctor_credentials: str = "M.D. (Psychiatry)"

    @field_validator(
        "allowed_origins", "allowed_referer_domains", "trap_fields", mode="before"
    )
    @classmethod
    def parse_list(cls, value: str | list[str] | None) -> list[str]:
        """Accept comma separated or JSON list env input."""
        return _split_list(value)

    @field_validator("doctor_email", mode="before")
    @classmethod
    def blank_doctor_email(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def backups_path(self) -> Path:
        return Path(self.backups_dir)

    @property
    def fallback_log_path(self) -> Path:
        return self.backups_path / self.fallback_log_name

    @property
    def spam_log_path(self) -> Path:
        return self.backups_path / self.spam_log_name

    @property
    def submissions_log_path(self) -> Path:
        return self.backups_path / self.submissions_log_name

    @cached_property
    def resolved_database_url(self) -> str:
        """Return the SQLAlchemy URL.

        ``DATABASE_URL`` wins. Otherwise ``DB_HOST``/``DB_NAME``/``DB_USER``/
        ``DB_PASSWORD`` build a MySQL URL, and without either a local SQLite
        file is used.
        """
        if self.database_url:
            url = self.database_url
            # Heroku style URLs
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            return url
        if self.db_host and self.db_name:
            return URL.create(
                "mysql+pymysql",
                username=self.db_user,
                password=self.db_password,
                host=self.db_host,
                port=self.db_port,
                database=self.db_name,
                query={"charset": "utf8mb4"},
            ).render_as_string(hide_password=False)
        return "sqlite:///./data/clinic.db"


settings = Settings()
