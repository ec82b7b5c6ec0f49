from __future__ import annotations

import logging
from logging.config import dictConfig

from asgi_correlation_id.context import correlation_id
from pythonjsonlogger import jsonlogger

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(correlation_id)s): %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(correlation_id)s"


class CorrelationIdFilter(logging.Filter):
    """Tag each record with the request's X-Request-ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Route application and uvicorn logs through one console handler.

    JSON lines in deployed environments, a readable single-line format when
    running locally.
    """
    formatter = "json" if json_format else "plain"
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"correlation": {"()": CorrelationIdFilter}},
            "formatters": {
                "json": {"()": jsonlogger.JsonFormatter, "fmt": JSON_FORMAT},
                "plain": {"format": PLAIN_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "filters": ["correlation"],
                }
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                name: {"handlers": ["console"], "level": level, "propagate": False}
                for name in ("uvicorn.error", "uvicorn.access")
            },
        }
    )
