from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from clinic.database import Base


class RateLimitHit(Base):
    """One accepted contact submission, keyed by client identity."""

    __tablename__ = "contact_rate_limits"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    identity: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_contact_rate_limit_identity_created", "identity", "created_at"),
    )
