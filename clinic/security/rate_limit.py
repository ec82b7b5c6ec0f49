"""Rolling-window submission limits.

Two layers live here: a coarse slowapi ``limiter`` that guards the endpoint
against request floods, and ``RateLimiter``, the pipeline stage that caps
accepted submissions per client identity over a rolling window. The latter
keeps its state in an injected ``RateWindowStore`` so the backing can be an
in-process map or a database table without touching pipeline logic.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from slowapi import Limiter
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from clinic.errors import RateLimited
from clinic.models.rate_limit import RateLimitHit
from clinic.security.utils import client_identity

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=client_identity)


class RateWindowStore(Protocol):
    """Keyed store of recent submission timestamps (epoch seconds)."""

    def recent(self, identity: str, since: float) -> list[float]:
        """Drop timestamps older than ``since`` and return the rest."""
        ...

    def record(self, identity: str, at: float) -> None:
        ...

    def hit(self, identity: str, since: float, now: float, limit: int) -> bool:
        """Prune, count and, if under ``limit``, record ``now`` atomically.

        Returns False when the identity already has ``limit`` entries.
        """
        ...


class InMemoryRateWindowStore:
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._windows: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, identity: str, since: float) -> list[float]:
        kept = [ts for ts in self._windows.get(identity, []) if ts >= since]
        if kept:
            self._windows[identity] = kept
        else:
            self._windows.pop(identity, None)
        return kept

    def recent(self, identity: str, since: float) -> list[float]:
        with self._lock:
            return list(self._prune(identity, since))

    def record(self, identity: str, at: float) -> None:
        with self._lock:
            self._windows.setdefault(identity, []).append(at)

    def hit(self, identity: str, since: float, now: float, limit: int) -> bool:
        with self._lock:
            if len(self._prune(identity, since)) >= limit:
                return False
            self._windows.setdefault(identity, []).append(now)
            return True


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def _to_epoch(value: datetime) -> float:
    return value.replace(tzinfo=timezone.utc).timestamp()


class SqlRateWindowStore:
    """Database-backed store so limits hold across worker processes.

    ``hit`` runs prune, count and insert in one transaction. Within a worker
    the transactions are serialized by a lock, and the locking read keeps
    workers sharing a MySQL or PostgreSQL database from interleaving.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def recent(self, identity: str, since: float) -> list[float]:
        cutoff = _to_datetime(since)
        with self.session_factory() as db:
            try:
                db.execute(
                    delete(RateLimitHit).where(
                        RateLimitHit.identity == identity,
                        RateLimitHit.created_at < cutoff,
                    )
                )
                db.commit()
            except SQLAlchemyError as exc:
                logger.warning("Failed to prune rate limit entries: %s", exc)
                db.rollback()
            try:
                rows = db.scalars(
                    select(RateLimitHit.created_at)
                    .where(
                        RateLimitHit.identity == identity,
                        RateLimitHit.created_at >= cutoff,
                    )
                    .order_by(RateLimitHit.created_at)
                ).all()
            except SQLAlchemyError as exc:
                # Fail open: an unreachable store must not block inquiries.
                logger.error("Failed to read rate limit entries: %s", exc)
                return []
        return [_to_epoch(created_at) for created_at in rows]

    def record(self, identity: str, at: float) -> None:
        with self.session_factory() as db:
            try:
                db.add(RateLimitHit(identity=identity, created_at=_to_datetime(at)))
                db.commit()
            except SQLAlchemyError as exc:
                logger.error("Failed to record rate limit entry: %s", exc)
                db.rollback()

    def hit(self, identity: str, since: float, now: float, limit: int) -> bool:
        cutoff = _to_datetime(since)
        with self._lock, self.session_factory() as db:
            try:
                db.execute(
                    delete(RateLimitHit).where(
                        RateLimitHit.identity == identity,
                        RateLimitHit.created_at < cutoff,
                    )
                )
                count = len(
                    db.scalars(
                        select(RateLimitHit.id)
                        .where(RateLimitHit.identity == identity)
                        .with_for_update()
                    ).all()
                )
                if count >= limit:
                    db.commit()
                    return False
                db.add(RateLimitHit(identity=identity, created_at=_to_datetime(now)))
                db.commit()
            except SQLAlchemyError as exc:
                # Fail open: an unreachable store must not block inquiries.
                logger.error("Rate limit check failed: %s", exc)
                db.rollback()
        return True


class RateLimiter:
    """Allow the first ``max_submissions`` per identity within the window.

    The count is taken before inserting the current request, so with the
    default of 5 the fifth submission passes and the sixth is rejected.
    Rejected requests are not recorded.
    """

    def __init__(
        self,
        store: RateWindowStore,
        max_submissions: int = 5,
        window_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.max_submissions = max_submissions
        self.window_seconds = window_seconds
        self.clock = clock

    def hit(self, identity: str) -> None:
        now = self.clock()
        allowed = self.store.hit(
            identity, now - self.window_seconds, now, self.max_submissions
        )
        if not allowed:
            logger.warning(
                "Contact rate limit exceeded",
                extra={"client_ip": identity, "limit": self.max_submissions},
            )
            raise RateLimited()
