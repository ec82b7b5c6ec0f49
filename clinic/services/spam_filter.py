from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from clinic.services.audit_log import JsonLineLog, format_timestamp

logger = logging.getLogger(__name__)


class SpamFilter:
    """Honeypot check over hidden form fields a human never fills in."""

    def __init__(self, trap_fields: Iterable[str], spam_log: JsonLineLog) -> None:
        self.trap_fields = tuple(trap_fields)
        self.spam_log = spam_log

    def is_spam(self, fields: Mapping[str, str]) -> bool:
        return any(fields.get(name) for name in self.trap_fields)

    def record(
        self,
        fields: Mapping[str, str],
        client_ip: str,
        user_agent: str,
        now: datetime,
    ) -> None:
        tripped = [name for name in self.trap_fields if fields.get(name)]
        logger.warning(
            "Honeypot tripped; submission diverted to spam log",
            extra={"client_ip": client_ip, "trap_fields": tripped},
        )
        self.spam_log.try_append(
            {
                "timestamp": format_timestamp(now),
                "ip": client_ip,
                "data": dict(fields),
                "user_agent": user_agent,
            }
        )
