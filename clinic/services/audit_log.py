"""Append-only JSON-lines logs (fallback submissions, spam attempts, audit)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from clinic.schemas.contact import TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_SECONDS = 10


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


@dataclass
class LogStatistics:
    """What the external status reporter reads from a log."""

    count: int
    last_timestamp: str

    def as_dict(self) -> dict[str, object]:
        return {"count": self.count, "last_timestamp": self.last_timestamp}


class JsonLineLog:
    """One JSON object per line, appended under an exclusive lock.

    The lock is held only for the single-line write; readers tolerate lines
    from concurrent requests in any order.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def append(self, record: dict[str, Any]) -> None:
        """Append ``record``; raises ``OSError`` if the file cannot be written."""
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(self.lock_path), timeout=LOCK_TIMEOUT_SECONDS):
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)

    def try_append(self, record: dict[str, Any]) -> bool:
        """Best-effort append that reports failure instead of raising."""
        try:
            self.append(record)
        except OSError as exc:
            logger.error("Failed to append to %s: %s", self.path, exc)
            return False
        return True

    def _lines(self) -> list[str]:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8", errors="ignore")
        return [line for line in text.splitlines() if line.strip()]

    def read(self) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        for line in self._lines():
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records

    def statistics(self) -> LogStatistics:
        lines = self._lines()
        if not lines:
            return LogStatistics(count=0, last_timestamp="never")
        try:
            last = json.loads(lines[-1])
        except json.JSONDecodeError:
            last = {}
        timestamp = last.get("timestamp") if isinstance(last, dict) else None
        return LogStatistics(count=len(lines), last_timestamp=timestamp or "never")
