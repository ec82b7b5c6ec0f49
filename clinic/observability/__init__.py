"""Observability helpers: structured JSON logging."""

from __future__ import annotations

from clinic.observability.logging import CorrelationIdFilter, configure_logging

__all__ = ["CorrelationIdFilter", "configure_logging"]
