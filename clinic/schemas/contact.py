from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Submission(BaseModel):
    """A validated, HTML-encoded contact inquiry.

    Built once at intake and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    phone: str = ""
    subject: str
    message: str
    ip_address: str
    user_agent: str = ""
    submitted_at: datetime

    @property
    def timestamp(self) -> str:
        return self.submitted_at.strftime(TIMESTAMP_FORMAT)

    def as_record(self) -> dict[str, str]:
        """Flat representation used by the file fallback."""
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "subject": self.subject,
            "message": self.message,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": self.timestamp,
        }

    def audit_record(self) -> dict[str, str]:
        return {
            "name": self.name,
            "email": self.email,
            "subject": self.subject,
            "ip": self.ip_address,
            "timestamp": self.timestamp,
        }


class ContactResponse(BaseModel):
    """Schema for every contact endpoint response."""

    success: bool
    message: str
